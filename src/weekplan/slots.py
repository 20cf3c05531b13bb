"""Slot registry operations.

Every function takes a :class:`ScheduleState` and returns a new one, or
``None`` when the request is rejected (bad time range, unknown id, ...).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from weekplan.ids import IdGenerator
from weekplan.models import SavedSlotList, ScheduleState, Slot, Task, Weekday
from weekplan.timemodel import compute_hours, parse_time


def _coerce_day(day: Weekday | str) -> Weekday | None:
    if isinstance(day, Weekday):
        return day
    return Weekday.parse(day)


def detach_tasks(tasks: dict[str, Task], slot_ids: set[str]) -> dict[str, Task]:
    """Unassign every task that points at one of *slot_ids*."""
    return {
        tid: replace(t, assigned_slot_id=None) if t.assigned_slot_id in slot_ids else t
        for tid, t in tasks.items()
    }


def used_hours(state: ScheduleState, slot_id: str) -> float:
    return sum(
        t.duration
        for t in state.tasks.values()
        if t.assigned_slot_id == slot_id and t.uses_capacity
    )


def create_slot(
    state: ScheduleState,
    day: Weekday | str,
    start: str,
    end: str,
    ids: IdGenerator,
) -> ScheduleState | None:
    weekday = _coerce_day(day)
    hours = compute_hours(start, end)
    if weekday is None or hours is None:
        return None
    slot = Slot(id=ids.next_id("slot"), day=weekday, start=start, end=end, hours=hours)
    return state.with_slots({**state.slots, slot.id: slot})


def update_slot(
    state: ScheduleState,
    slot_id: str,
    day: Weekday | str,
    start: str,
    end: str,
) -> ScheduleState | None:
    """Replace a slot in place. Shrinking below the assigned load is rejected."""
    if slot_id not in state.slots:
        return None
    weekday = _coerce_day(day)
    hours = compute_hours(start, end)
    if weekday is None or hours is None:
        return None
    if used_hours(state, slot_id) > hours + 1e-9:
        return None
    slots = dict(state.slots)
    slots[slot_id] = Slot(id=slot_id, day=weekday, start=start, end=end, hours=hours)
    return state.with_slots(slots)


def duplicate_slot(state: ScheduleState, slot_id: str, ids: IdGenerator) -> ScheduleState | None:
    slot = state.slots.get(slot_id)
    if slot is None:
        return None
    copy = replace(slot, id=ids.next_id("slot"))
    return state.with_slots({**state.slots, copy.id: copy})


def bulk_duplicate(
    state: ScheduleState, slot_ids: Iterable[str], ids: IdGenerator
) -> ScheduleState | None:
    wanted = set(slot_ids)
    originals = [s for s in state.slots.values() if s.id in wanted]
    if not originals:
        return None
    slots = dict(state.slots)
    for slot in originals:
        copy = replace(slot, id=ids.next_id("slot"))
        slots[copy.id] = copy
    return state.with_slots(slots)


def delete_slots(state: ScheduleState, slot_ids: Iterable[str]) -> ScheduleState | None:
    """Remove slots, unassign their tasks and drop them from the selection."""
    doomed = {sid for sid in slot_ids if sid in state.slots}
    if not doomed:
        return None
    return ScheduleState(
        slots={sid: s for sid, s in state.slots.items() if sid not in doomed},
        tasks=detach_tasks(state.tasks, doomed),
        selection=state.selection - doomed,
    )


def bulk_delete_selected(state: ScheduleState) -> ScheduleState | None:
    return delete_slots(state, state.selection)


def bulk_duplicate_selected(state: ScheduleState, ids: IdGenerator) -> ScheduleState | None:
    return bulk_duplicate(state, state.selection, ids)


def toggle_selection(state: ScheduleState, slot_id: str) -> ScheduleState | None:
    if slot_id not in state.slots:
        return None
    return replace(state, selection=state.selection ^ {slot_id})


def select_all(state: ScheduleState) -> ScheduleState:
    return replace(state, selection=frozenset(state.slots))


def clear_selection(state: ScheduleState) -> ScheduleState:
    return replace(state, selection=frozenset())


def load_slot_list(state: ScheduleState, saved: SavedSlotList) -> ScheduleState:
    """Replace the live slots with a saved snapshot.

    Tasks whose slot is missing from the snapshot, or whose slot no longer
    holds its assigned load, are returned to the unassigned pool.
    """
    slots = {s.id: s for s in saved.slots}
    loaded = ScheduleState(slots=slots, tasks=state.tasks)
    stale = {t.assigned_slot_id for t in state.tasks.values() if t.assigned_slot_id} - set(slots)
    stale |= {sid for sid, s in slots.items() if used_hours(loaded, sid) > s.hours + 1e-9}
    return ScheduleState(slots=slots, tasks=detach_tasks(state.tasks, stale))


def _sort_value(slot: Slot) -> int:
    return slot.day.index * 1440 + (parse_time(slot.start) or 0)


def sorted_slots(state: ScheduleState) -> list[Slot]:
    """Slots in week order (Sunday first), then by start time."""
    return sorted(state.slots.values(), key=_sort_value)
