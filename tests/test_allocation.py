import pytest

from weekplan import allocation
from weekplan.ids import SequentialIds
from weekplan.models import ScheduleState, TaskLifecycle
from weekplan.normalize import normalize_tasks
from weekplan.slots import create_slot, delete_slots
from weekplan.timemodel import CAPACITY_EPSILON


@pytest.fixture
def ids():
    return SequentialIds()


def _week(ids, *tasks):
    """One 2h Monday slot (slot-1) plus the given (name, hours) tasks."""
    state = create_slot(ScheduleState(), "Monday", "09:00", "11:00", ids)
    for name, hours in tasks:
        state = allocation.add_task(state, name, hours, ids)
    return state


def _used(state, slot_id):
    return sum(
        t.duration for t in state.tasks.values()
        if t.assigned_slot_id == slot_id and t.uses_capacity
    )


def test_add_task_validation(ids):
    state = ScheduleState()
    assert allocation.add_task(state, "  ", 1, ids) is None
    assert allocation.add_task(state, "Email", 0, ids) is None
    assert allocation.add_task(state, "Email", -1, ids) is None
    assert allocation.add_task(state, "Email", "abc", ids) is None
    assert allocation.add_task(state, "Email", float("nan"), ids) is None

    added = allocation.add_task(state, "  Email ", "1.256", ids, [" b", "a", "b", ""])
    task = added.tasks["task-1"]
    assert task.name == "Email"
    assert task.duration == 1.26
    assert task.tags == ("a", "b")
    assert task.assigned_slot_id is None


def test_assign_exact_fit_does_not_split(ids):
    state = _week(ids, ("Report", 2.0))
    assigned = allocation.assign(state, "task-1", "slot-1", ids)
    assert len(assigned.tasks) == 1
    assert assigned.tasks["task-1"].assigned_slot_id == "slot-1"
    assert allocation.remaining_capacity(assigned, "slot-1") == 0


def test_assign_splits_when_partially_full(ids):
    state = _week(ids, ("Deep work", 1.5), ("Email", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    split = allocation.assign(state, "task-2", "slot-1", ids)
    remainder = split.tasks["task-2"]
    assert remainder.duration == 0.5
    assert remainder.assigned_slot_id is None

    part = split.tasks["task-3"]
    assert part.name == "Email"
    assert part.duration == 0.5
    assert part.assigned_slot_id == "slot-1"
    assert _used(split, "slot-1") == pytest.approx(2.0)


def test_assign_to_full_slot_is_rejected(ids):
    state = _week(ids, ("A", 2.0), ("B", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)
    assert allocation.assign(state, "task-2", "slot-1", ids) is None


def test_assign_unknown_ids(ids):
    state = _week(ids, ("A", 1.0))
    assert allocation.assign(state, "task-9", "slot-1", ids) is None
    assert allocation.assign(state, "task-1", "slot-9", ids) is None


def test_reassign_within_same_slot_excludes_itself(ids):
    state = _week(ids, ("A", 2.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)
    again = allocation.assign(state, "task-1", "slot-1", ids)
    assert again.tasks["task-1"].assigned_slot_id == "slot-1"
    assert len(again.tasks) == 1


def test_capacity_never_exceeded_across_operations(ids):
    state = _week(ids, ("A", 0.75), ("B", 0.75), ("C", 0.75), ("D", 1.25))
    for tid in ("task-1", "task-2", "task-3", "task-4"):
        result = allocation.assign(state, tid, "slot-1", ids)
        if result is not None:
            state = result
        assert _used(state, "slot-1") <= 2.0 + CAPACITY_EPSILON

    resized = allocation.edit_task(state, "task-1", "A", 3)
    assert resized is None
    assert _used(state, "slot-1") <= 2.0 + CAPACITY_EPSILON


def test_merge_requires_matching_names(ids):
    state = _week(ids, ("Email", 0.5), ("email ", 0.5), ("Gym", 1.0))
    # Normalization would fold the first two, so merge straight away
    merged = allocation.merge_on_drop(state, "task-1", "task-2")
    assert "task-1" not in merged.tasks
    assert merged.tasks["task-2"].duration == 1.0

    assert allocation.merge_on_drop(state, "task-1", "task-3") is None
    assert allocation.merge_on_drop(state, "task-1", "task-1") is None
    assert allocation.merge_on_drop(state, "task-1", "task-9") is None


def test_merge_overflow_leaves_task_unassigned(ids):
    state = _week(ids, ("Email", 1.5), ("Email", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    merged = allocation.merge_on_drop(state, "task-2", "task-1")
    target = merged.tasks["task-1"]
    assert target.duration == 2.5
    assert target.assigned_slot_id is None


def test_merge_keeps_slot_when_it_fits(ids):
    state = _week(ids, ("Email", 0.5), ("Email", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    merged = allocation.merge_on_drop(state, "task-2", "task-1")
    assert merged.tasks["task-1"].duration == 1.5
    assert merged.tasks["task-1"].assigned_slot_id == "slot-1"


def test_edit_task(ids):
    state = _week(ids, ("A", 1.0), ("B", 0.5))
    state = allocation.assign(state, "task-1", "slot-1", ids)
    state = allocation.assign(state, "task-2", "slot-1", ids)

    assert allocation.edit_task(state, "task-1", "A", 2.0) is None
    edited = allocation.edit_task(state, "task-1", "  Renamed ", 1.5)
    assert edited.tasks["task-1"].name == "Renamed"
    assert edited.tasks["task-1"].duration == 1.5
    assert allocation.edit_task(state, "task-1", "", 1.0) is None
    assert allocation.edit_task(state, "task-1", "A", 0) is None


def test_postponed_tasks_keep_their_slot(ids):
    state = _week(ids, ("A", 2.0), ("B", 2.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    postponed = allocation.toggle_postpone(state, "task-1")
    assert postponed.tasks["task-1"].postponed
    assert postponed.tasks["task-1"].assigned_slot_id == "slot-1"
    assert allocation.remaining_capacity(postponed, "slot-1") == 0

    # The slot stays full while A is postponed
    assert allocation.assign(postponed, "task-2", "slot-1", ids) is None
    assigned = [t for t in postponed.tasks.values() if t.assigned_slot_id == "slot-1"]
    assert sum(t.duration for t in assigned) <= 2.0 + CAPACITY_EPSILON

    back = allocation.toggle_postpone(postponed, "task-1")
    assert back.tasks["task-1"] == state.tasks["task-1"]

    # Postponed hours drop out of the totals only
    s = allocation.summarize(postponed)
    assert s.assigned_hours == 0
    assert s.postponed_hours == 2.0


def test_postponed_rows_in_different_slots_stay_apart(ids):
    state = _week(ids, ("Email", 2.0), ("Email", 1.0))
    state = create_slot(state, "Tuesday", "09:00", "10:00", ids)
    state = allocation.assign(state, "task-1", "slot-1", ids)
    state = allocation.assign(state, "task-2", "slot-2", ids)
    state = allocation.toggle_postpone(state, "task-1")
    state = allocation.toggle_postpone(state, "task-2")

    normalized = normalize_tasks(state.tasks)
    assert normalized["task-1"].duration == 2.0
    assert normalized["task-2"].assigned_slot_id == "slot-2"


def test_duplicate_task_naming(ids):
    state = _week(ids, ("Email", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    once = allocation.duplicate_task(state, "task-1", ids)
    copy = once.tasks["task-2"]
    assert copy.name == "Email (1)"
    assert copy.assigned_slot_id is None
    assert copy.duration == 1.0

    twice = allocation.duplicate_task(once, "task-2", ids)
    assert twice.tasks["task-3"].name == "Email (2)"
    # Copies survive normalization as separate rows
    assert len(normalize_tasks(twice.tasks)) == 3


def test_no_time_tasks_cannot_be_assigned(ids):
    state = create_slot(ScheduleState(), "Monday", "09:00", "11:00", ids)
    state = allocation.add_no_time_task(state, "Call mom", ids)
    assert state.tasks["task-1"].is_no_time
    assert allocation.assign(state, "task-1", "slot-1", ids) is None
    assert allocation.edit_task(state, "task-1", "Call dad", 1) is None
    assert allocation.add_no_time_task(state, " ", ids) is None


def test_delete_empty_and_reset(ids):
    state = _week(ids, ("A", 1.0), ("B", 1.0))
    assert allocation.empty_slots(state) is None

    state = allocation.assign(state, "task-1", "slot-1", ids)
    emptied = allocation.empty_slots(state)
    assert all(t.assigned_slot_id is None for t in emptied.tasks.values())

    deleted = allocation.delete_task(state, "task-2")
    assert set(deleted.tasks) == {"task-1"}
    assert allocation.delete_task(state, "task-9") is None

    cleared = allocation.reset_schedule(state)
    assert cleared.slots == {} and cleared.tasks == {}
    assert allocation.reset_schedule(cleared) is None


def test_deleting_slot_returns_tasks_to_pool(ids):
    state = _week(ids, ("A", 1.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)
    state = delete_slots(state, ["slot-1"])
    assert state.tasks["task-1"].assigned_slot_id is None
    assert state.tasks["task-1"].lifecycle == TaskLifecycle.ACTIVE


def test_summarize(ids):
    state = _week(ids, ("Email", 1.0), ("Gym", 1.5), ("Read", 2.0))
    state = allocation.assign(state, "task-1", "slot-1", ids)
    state = allocation.toggle_postpone(state, "task-3")
    state = allocation.add_no_time_task(state, "Call mom", ids)

    s = allocation.summarize(state)
    assert s.total_slot_hours == 2.0
    assert s.assigned_hours == 1.0
    assert s.unassigned_hours == 1.5
    assert s.postponed_hours == 2.0
    assert s.total_task_hours == 2.5
    assert s.hour_difference == -0.5
    assert s.has_assigned
    assert s.hours_by_name[0] == ("Read", 2.0)


def test_slot_usage_and_sorting(ids):
    state = _week(ids, ("B", 1.0), ("A", 2.0), ("A", 0.5))
    state = allocation.assign(state, "task-1", "slot-1", ids)

    usage = allocation.slot_usage(state)
    assert usage[0].remaining == 1.0
    assert not usage[0].is_full
    assert [t.id for t in usage[0].tasks] == ["task-1"]

    ordered = allocation.sorted_tasks(allocation.required_tasks(state))
    assert [t.id for t in ordered] == ["task-2", "task-3", "task-1"]
