"""Expiry sweep for elapsed slots and the pending-cleanup review.

A slot is tied to a weekday, and the sweep only looks at this week's
occurrence of that weekday: once its end time has gone by, the slot is
removed and the tasks that were in it are staged for review. Staged tasks
are either kept (back to the unassigned pool) or discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta

from weekplan.models import ScheduleState, Slot, Task, TaskLifecycle
from weekplan.timemodel import parse_time, weekday_index

SWEEP_INTERVAL_SECONDS = 60


@dataclass
class SweepResult:
    state: ScheduleState
    removed_slot_ids: list[str] = field(default_factory=list)
    staged_task_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed_slot_ids)


def slot_end(slot: Slot, now: datetime) -> datetime | None:
    """End of this week's occurrence of *slot*, in *now*'s timezone."""
    end_min = parse_time(slot.end)
    if end_min is None:
        return None
    day_delta = slot.day.index - weekday_index(now)
    midnight = datetime.combine(now.date(), time(), tzinfo=now.tzinfo)
    return midnight + timedelta(days=day_delta, minutes=end_min)


def is_slot_passed(slot: Slot, now: datetime) -> bool:
    end = slot_end(slot, now)
    return end is not None and end <= now


def _stage(task: Task) -> Task:
    return replace(task, assigned_slot_id=None, lifecycle=TaskLifecycle.PENDING_CLEANUP)


def tick(state: ScheduleState, now: datetime) -> SweepResult:
    """Reclaim every slot whose end has passed and stage its tasks.

    When nothing has expired the very same state object comes back.
    """
    passed = {sid for sid, slot in state.slots.items() if is_slot_passed(slot, now)}
    if not passed:
        return SweepResult(state=state)

    staged = [tid for tid, t in state.tasks.items() if t.assigned_slot_id in passed]
    tasks = {
        tid: _stage(t) if t.assigned_slot_id in passed else t
        for tid, t in state.tasks.items()
    }
    swept = ScheduleState(
        slots={sid: s for sid, s in state.slots.items() if sid not in passed},
        tasks=tasks,
        selection=state.selection - passed,
    )
    return SweepResult(
        state=swept,
        removed_slot_ids=[sid for sid in state.slots if sid in passed],
        staged_task_ids=staged,
    )


# ---------------------------------------------------------------------------
# Pending-cleanup review
# ---------------------------------------------------------------------------


def pending_tasks(state: ScheduleState) -> list[Task]:
    return [t for t in state.tasks.values() if t.is_pending]


def needs_review(state: ScheduleState) -> bool:
    """The review stays open while any task is still pending."""
    return any(t.is_pending for t in state.tasks.values())


def _restore(task: Task) -> Task:
    return replace(task, assigned_slot_id=None, lifecycle=TaskLifecycle.ACTIVE)


def keep(state: ScheduleState, task_id: str) -> ScheduleState | None:
    """Return one pending task to the unassigned pool."""
    task = state.tasks.get(task_id)
    if task is None or not task.is_pending:
        return None
    return state.with_tasks({**state.tasks, task_id: _restore(task)})


def discard(state: ScheduleState, task_id: str) -> ScheduleState | None:
    task = state.tasks.get(task_id)
    if task is None or not task.is_pending:
        return None
    return state.with_tasks({tid: t for tid, t in state.tasks.items() if tid != task_id})


def confirm_return_all(state: ScheduleState) -> ScheduleState | None:
    if not needs_review(state):
        return None
    return state.with_tasks(
        {tid: _restore(t) if t.is_pending else t for tid, t in state.tasks.items()}
    )


def confirm_delete_all(state: ScheduleState) -> ScheduleState | None:
    if not needs_review(state):
        return None
    return state.with_tasks({tid: t for tid, t in state.tasks.items() if not t.is_pending})
