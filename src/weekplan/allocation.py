"""Task-to-slot allocation with capacity checks, splitting and merging."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace

from weekplan.ids import IdGenerator
from weekplan.models import ScheduleState, Slot, Task, TaskKind
from weekplan.normalize import normalized_tags
from weekplan.slots import sorted_slots
from weekplan.timemodel import CAPACITY_EPSILON, round_hours

_DUP_SUFFIX = re.compile(r"^(.*)\s\((\d+)\)$")


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


def remaining_capacity(
    state: ScheduleState,
    slot_id: str,
    exclude: Iterable[str] = (),
) -> float:
    """Hours still free in a slot, ignoring the tasks in *exclude*.

    No-time and pending-cleanup tasks do not consume capacity; postponed
    tasks do, since they keep their slot.
    An unknown slot has no capacity.
    """
    slot = state.slots.get(slot_id)
    if slot is None:
        return 0.0
    skip = set(exclude)
    used = sum(
        t.duration
        for t in state.tasks.values()
        if t.assigned_slot_id == slot_id and t.uses_capacity and t.id not in skip
    )
    return max(slot.hours - used, 0.0)


def _coerce_duration(duration: float | str) -> float | None:
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return round_hours(value)


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


def assign(
    state: ScheduleState,
    task_id: str,
    slot_id: str,
    ids: IdGenerator,
) -> ScheduleState | None:
    """Put a task into a slot, splitting it when only part of it fits.

    - Fits (including an exact fit): the task moves into the slot.
    - Slot full: rejected, the task stays where it was.
    - Partial fit: a new task holding the available hours goes into the
      slot; the original keeps the remainder and becomes unassigned, or is
      removed when nothing remains.
    """
    task = state.tasks.get(task_id)
    if task is None or slot_id not in state.slots or not task.is_required:
        return None

    available = round_hours(remaining_capacity(state, slot_id, {task_id}))
    tasks = dict(state.tasks)

    if task.duration <= available:
        tasks[task_id] = replace(task, assigned_slot_id=slot_id)
        return state.with_tasks(tasks)

    if available <= 0:
        return None

    part = replace(
        task,
        id=ids.next_id("task"),
        duration=available,
        assigned_slot_id=slot_id,
        postponed=False,
    )
    remainder = round_hours(task.duration - available)
    if remainder > 0:
        tasks[task_id] = replace(task, duration=remainder, assigned_slot_id=None)
    else:
        del tasks[task_id]
    tasks[part.id] = part
    return state.with_tasks(tasks)


def unassign(state: ScheduleState, task_id: str) -> ScheduleState | None:
    task = state.tasks.get(task_id)
    if task is None:
        return None
    return state.with_tasks({**state.tasks, task_id: replace(task, assigned_slot_id=None)})


def empty_slots(state: ScheduleState) -> ScheduleState | None:
    """Unassign every task. Rejected when nothing is assigned."""
    if not any(t.assigned_slot_id for t in state.tasks.values()):
        return None
    return state.with_tasks(
        {tid: replace(t, assigned_slot_id=None) for tid, t in state.tasks.items()}
    )


def merge_on_drop(
    state: ScheduleState,
    source_id: str,
    target_id: str,
) -> ScheduleState | None:
    """Fold *source* into *target* when their names match (trimmed, case-insensitive).

    The merged task keeps the target's id, name and position. If the summed
    duration does not fit the chosen slot it ends up unassigned; the merge
    itself is never refused for capacity reasons.
    """
    if source_id == target_id:
        return None
    source = state.tasks.get(source_id)
    target = state.tasks.get(target_id)
    if source is None or target is None:
        return None
    if source.is_pending or target.is_pending or source.kind != target.kind:
        return None
    source_name = source.name.strip().lower()
    if not source_name or source_name != target.name.strip().lower():
        return None

    duration = round_hours(source.duration + target.duration)
    slot_id = target.assigned_slot_id or source.assigned_slot_id or None
    if slot_id is not None:
        available = remaining_capacity(state, slot_id, {source_id, target_id})
        if duration > available:
            slot_id = None

    merged = replace(
        target,
        duration=duration,
        assigned_slot_id=slot_id,
        postponed=target.postponed or source.postponed,
    )
    tasks = {tid: t for tid, t in state.tasks.items() if tid != source_id}
    tasks[target_id] = merged
    return state.with_tasks(tasks)


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


def add_task(
    state: ScheduleState,
    name: str,
    duration: float | str,
    ids: IdGenerator,
    tags: Iterable[str] = (),
) -> ScheduleState | None:
    trimmed = name.strip()
    hours = _coerce_duration(duration)
    if not trimmed or hours is None:
        return None
    task = Task(id=ids.next_id("task"), name=trimmed, duration=hours, tags=normalized_tags(tags))
    return state.with_tasks({**state.tasks, task.id: task})


def add_no_time_task(state: ScheduleState, name: str, ids: IdGenerator) -> ScheduleState | None:
    trimmed = name.strip()
    if not trimmed:
        return None
    task = Task(id=ids.next_id("task"), name=trimmed, duration=0, kind=TaskKind.NO_TIME)
    return state.with_tasks({**state.tasks, task.id: task})


def edit_task(
    state: ScheduleState,
    task_id: str,
    name: str,
    duration: float | str,
) -> ScheduleState | None:
    """Rename and resize a task. An assigned task may not outgrow its slot."""
    task = state.tasks.get(task_id)
    trimmed = name.strip()
    hours = _coerce_duration(duration)
    if task is None or not task.is_required or not trimmed or hours is None:
        return None
    if task.assigned_slot_id and hours > remaining_capacity(state, task.assigned_slot_id, {task_id}):
        return None
    return state.with_tasks({**state.tasks, task_id: replace(task, name=trimmed, duration=hours)})


def toggle_postpone(state: ScheduleState, task_id: str) -> ScheduleState | None:
    """Flip the postponed flag; the slot reference is left alone."""
    task = state.tasks.get(task_id)
    if task is None or not task.is_required:
        return None
    updated = replace(task, postponed=not task.postponed)
    return state.with_tasks({**state.tasks, task_id: updated})


def _next_duplicate_name(state: ScheduleState, original: str) -> str:
    trimmed = original.strip()
    match = _DUP_SUFFIX.match(trimmed)
    base = match.group(1).strip() if match else trimmed
    existing = {t.name.strip() for t in state.tasks.values()}
    counter = 1
    while f"{base} ({counter})" in existing:
        counter += 1
    return f"{base} ({counter})"


def duplicate_task(state: ScheduleState, task_id: str, ids: IdGenerator) -> ScheduleState | None:
    """Copy a task as ``"<name> (n)"``; copies always start unassigned."""
    task = state.tasks.get(task_id)
    if task is None or task.is_pending:
        return None
    copy = replace(
        task,
        id=ids.next_id("task"),
        name=_next_duplicate_name(state, task.name),
        assigned_slot_id=None,
        postponed=False,
    )
    return state.with_tasks({**state.tasks, copy.id: copy})


def delete_task(state: ScheduleState, task_id: str) -> ScheduleState | None:
    if task_id not in state.tasks:
        return None
    return state.with_tasks({tid: t for tid, t in state.tasks.items() if tid != task_id})


def reset_schedule(state: ScheduleState) -> ScheduleState | None:
    """Drop every slot and task. Rejected when there is nothing to clear."""
    if not state.slots and not state.tasks:
        return None
    return ScheduleState()


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@dataclass
class SlotUsage:
    """A slot with the tasks placed in it."""

    slot: Slot
    tasks: list[Task]
    remaining: float

    @property
    def is_full(self) -> bool:
        return self.remaining <= CAPACITY_EPSILON


@dataclass
class ScheduleSummary:
    total_slot_hours: float
    total_task_hours: float
    hour_difference: float
    assigned_hours: float
    unassigned_hours: float
    postponed_hours: float
    has_assigned: bool
    hours_by_name: list[tuple[str, float]]


def slot_usage(state: ScheduleState) -> list[SlotUsage]:
    """Per-slot view in week order."""
    return [
        SlotUsage(
            slot=slot,
            tasks=[t for t in state.tasks.values() if t.assigned_slot_id == slot.id],
            remaining=round_hours(remaining_capacity(state, slot.id)),
        )
        for slot in sorted_slots(state)
    ]


def sorted_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Unassigned first, then by name, then longest first."""
    return sorted(
        tasks,
        key=lambda t: (1 if t.assigned_slot_id else 0, t.name.lower(), -t.duration),
    )


def required_tasks(state: ScheduleState) -> list[Task]:
    return [t for t in state.tasks.values() if t.is_required]


def no_time_tasks(state: ScheduleState) -> list[Task]:
    return [t for t in state.tasks.values() if t.is_no_time and not t.is_pending]


def summarize(state: ScheduleState) -> ScheduleSummary:
    total_slots = round_hours(sum(s.hours for s in state.slots.values()))
    assigned = unassigned = postponed = 0.0
    by_name: dict[str, tuple[str, float]] = {}

    for task in required_tasks(state):
        if task.postponed:
            postponed += task.duration
        elif task.assigned_slot_id:
            assigned += task.duration
        else:
            unassigned += task.duration

        name = task.name.strip()
        if not name:
            continue
        label, hours = by_name.get(name.lower(), (name, 0.0))
        by_name[name.lower()] = (label, round_hours(hours + task.duration))

    total_tasks = round_hours(assigned + unassigned)
    return ScheduleSummary(
        total_slot_hours=total_slots,
        total_task_hours=total_tasks,
        hour_difference=round_hours(total_slots - total_tasks),
        assigned_hours=round_hours(assigned),
        unassigned_hours=round_hours(unassigned),
        postponed_hours=round_hours(postponed),
        has_assigned=any(t.assigned_slot_id for t in required_tasks(state)),
        hours_by_name=sorted(by_name.values(), key=lambda item: (-item[1], item[0])),
    )
