"""MCP server for weekplan: exposes slot and task tools to AI assistants."""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from weekplan.allocation import no_time_tasks, required_tasks, slot_usage, sorted_tasks, summarize
from weekplan.lifecycle import pending_tasks
from weekplan.models import Task
from weekplan.persistence import Store
from weekplan.planner import Planner

mcp = FastMCP(
    "weekplan",
    instructions="""\
weekplan keeps a weekly list of time slots (a weekday plus a start and end \
time) and a pool of tasks with durations in hours. Tasks are placed into \
slots without ever exceeding a slot's hours.

Key concepts:
- **Assignment**: assign_task puts a task into a slot. If only part of it fits, \
the task is split: the part that fits goes into the slot and the remainder stays \
unassigned. A full slot rejects the request.
- **Merge**: merge_tasks folds one task into another with the same name, summing \
hours. If the result no longer fits the slot it ends up unassigned.
- **Postponed** tasks are hidden from totals but keep their slot and its hours.
- **No-time** tasks have no duration and are never placed in a slot.
- **Expiry**: once this week's occurrence of a slot has ended, the slot is \
removed and its tasks wait for review (get_pending_cleanup). Each task is then \
kept (back to the unassigned pool) or discarded.

Typical workflow:
1. add_slot for each block of free time
2. add_task for each piece of work
3. get_schedule to see free hours per slot, then assign_task
4. get_status to compare available and required hours
5. review expired work with get_pending_cleanup, keep_task and discard_task

Ids look like "slot-3f9a1c2" and "task-81b0d4e"; use list_tasks and \
get_schedule to find them.\
""",
)


def _open() -> Planner:
    planner = Planner(Store())
    planner.load()
    return planner


def _result(planner: Planner, ok: bool, message: str, error: str) -> str:
    if not ok:
        return f"Error: {error}"
    if not planner.last_save_ok:
        return f"{message} Warning: the change could not be saved to disk."
    return message


def _task_to_dict(t: Task) -> dict:
    d = {
        "id": t.id,
        "name": t.name,
        "duration_hrs": t.duration,
        "assigned_slot_id": t.assigned_slot_id,
        "postponed": t.postponed,
    }
    if t.tags:
        d["tags"] = list(t.tags)
    return d


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def add_slot(day: str, start: str, end: str) -> str:
    """Add a weekly time slot.

    Args:
        day: Weekday name (e.g. "Monday")
        start: Start time "HH:mm"
        end: End time "HH:mm", later than start on the same day
    """
    planner = _open()
    return _result(planner, planner.create_slot(day, start, end), f"Added {day} {start}-{end}.",
                   "invalid weekday or time range.")


@mcp.tool()
def update_slot(slot_id: str, day: str, start: str, end: str) -> str:
    """Change a slot's weekday and times. Cannot shrink a slot below its assigned hours.

    Args:
        slot_id: Slot ID
        day: Weekday name
        start: Start time "HH:mm"
        end: End time "HH:mm"
    """
    planner = _open()
    return _result(planner, planner.update_slot(slot_id, day, start, end), f"Updated {slot_id}.",
                   f"cannot update {slot_id} (unknown id, bad range, or too small for its tasks).")


@mcp.tool()
def delete_slots(slot_ids: list[str]) -> str:
    """Delete slots; their tasks return to the unassigned pool.

    Args:
        slot_ids: Slot IDs to delete
    """
    planner = _open()
    return _result(planner, planner.delete_slots(slot_ids), f"Deleted {len(slot_ids)} slot(s).",
                   "no matching slots.")


@mcp.tool()
def duplicate_slots(slot_ids: list[str]) -> str:
    """Copy slots under new ids.

    Args:
        slot_ids: Slot IDs to copy
    """
    planner = _open()
    return _result(planner, planner.bulk_duplicate(slot_ids), f"Duplicated {len(slot_ids)} slot(s).",
                   "no matching slots.")


@mcp.tool()
def add_task(name: str, duration_hrs: float, tags: list[str] | None = None) -> str:
    """Add a task to the unassigned pool.

    Args:
        name: Task name
        duration_hrs: Hours needed, greater than zero
        tags: Optional labels
    """
    planner = _open()
    return _result(planner, planner.add_task(name, duration_hrs, tags or []), f"Added '{name.strip()}'.",
                   "a task needs a name and a positive duration.")


@mcp.tool()
def add_no_time_task(name: str) -> str:
    """Add a task without a time requirement (a simple to-do).

    Args:
        name: Task name
    """
    planner = _open()
    return _result(planner, planner.add_no_time_task(name), f"Added '{name.strip()}'.", "a task needs a name.")


@mcp.tool()
def update_task(task_id: str, name: str | None = None, duration_hrs: float | None = None) -> str:
    """Rename or resize a task. An assigned task may not grow past its slot's free hours.

    Args:
        task_id: Task ID
        name: New name
        duration_hrs: New duration in hours
    """
    planner = _open()
    task = planner.state.tasks.get(task_id)
    if task is None:
        return f"Error: task {task_id} not found."
    ok = planner.edit_task(
        task_id,
        name if name is not None else task.name,
        duration_hrs if duration_hrs is not None else task.duration,
    )
    return _result(planner, ok, f"Updated {task_id}.",
                   "empty name, non-positive duration, or the slot is too small.")


@mcp.tool()
def delete_task(task_id: str) -> str:
    """Delete a task.

    Args:
        task_id: Task ID
    """
    planner = _open()
    return _result(planner, planner.delete_task(task_id), f"Deleted {task_id}.", f"task {task_id} not found.")


@mcp.tool()
def assign_task(task_id: str, slot_id: str) -> str:
    """Place a task into a slot, splitting it when only part fits.

    Args:
        task_id: Task ID
        slot_id: Slot ID
    """
    planner = _open()
    ok = planner.assign(task_id, slot_id)
    left = planner.state.tasks.get(task_id)
    message = f"Assigned {task_id} to {slot_id}."
    if ok and left is not None and left.assigned_slot_id is None:
        message = f"Split {task_id}: {left.duration}h remain unassigned."
    return _result(planner, ok, message, f"{slot_id} is full, or an id is unknown.")


@mcp.tool()
def unassign_task(task_id: str) -> str:
    """Return a task to the unassigned pool.

    Args:
        task_id: Task ID
    """
    planner = _open()
    return _result(planner, planner.unassign(task_id), f"Unassigned {task_id}.", f"task {task_id} not found.")


@mcp.tool()
def merge_tasks(source_id: str, target_id: str) -> str:
    """Fold the source task into the target. Both must have the same name.

    Args:
        source_id: Task that disappears
        target_id: Task that absorbs the hours
    """
    planner = _open()
    return _result(planner, planner.merge(source_id, target_id), f"Merged {source_id} into {target_id}.",
                   "tasks must exist, differ, and share a name.")


@mcp.tool()
def toggle_postpone(task_id: str) -> str:
    """Postpone a task, or bring a postponed task back.

    Args:
        task_id: Task ID
    """
    planner = _open()
    before = planner.state.tasks.get(task_id)
    ok = planner.toggle_postpone(task_id)
    state = "active" if before is not None and before.postponed else "postponed"
    return _result(planner, ok, f"{task_id} is now {state}.", f"task {task_id} not found.")


@mcp.tool()
def keep_task(task_id: str) -> str:
    """Keep a task whose slot expired; it returns to the unassigned pool.

    Args:
        task_id: Task ID awaiting review
    """
    planner = _open()
    return _result(planner, planner.keep(task_id), f"Kept {task_id}.", f"{task_id} is not awaiting review.")


@mcp.tool()
def discard_task(task_id: str) -> str:
    """Delete a task whose slot expired.

    Args:
        task_id: Task ID awaiting review
    """
    planner = _open()
    return _result(planner, planner.discard(task_id), f"Discarded {task_id}.", f"{task_id} is not awaiting review.")


@mcp.tool()
def resolve_all_pending(keep: bool) -> str:
    """Keep or discard every task awaiting review.

    Args:
        keep: True returns them all to the pool, False deletes them
    """
    planner = _open()
    ok = planner.keep_all() if keep else planner.discard_all()
    return _result(planner, ok, "Resolved all pending tasks.", "no tasks awaiting review.")


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_tasks(search: str | None = None) -> str:
    """List tasks, unassigned first.

    Args:
        search: Filter by name (case-insensitive substring match)
    """
    planner = _open()
    tasks = sorted_tasks(required_tasks(planner.state)) + no_time_tasks(planner.state)
    if search:
        q = search.lower()
        tasks = [t for t in tasks if q in t.name.lower()]
    if not tasks:
        return "No tasks found."
    result = []
    for t in tasks:
        d = _task_to_dict(t)
        if t.is_no_time:
            d["no_time"] = True
        result.append(d)
    return json.dumps(result, indent=2)


@mcp.tool()
def get_schedule() -> str:
    """Slots in week order with their tasks and free hours."""
    planner = _open()
    result = [
        {
            **u.slot.to_dict(),
            "remaining_hrs": u.remaining,
            "is_full": u.is_full,
            "tasks": [_task_to_dict(t) for t in u.tasks],
        }
        for u in slot_usage(planner.state)
    ]
    return json.dumps(result, indent=2)


@mcp.tool()
def get_status() -> str:
    """Hours dashboard: slot capacity versus required task hours."""
    planner = _open()
    s = summarize(planner.state)
    result = {
        "slots_total": len(planner.state.slots),
        "slot_hours": s.total_slot_hours,
        "task_hours": s.total_task_hours,
        "assigned_hours": s.assigned_hours,
        "unassigned_hours": s.unassigned_hours,
        "postponed_hours": s.postponed_hours,
        "hour_difference": s.hour_difference,
        "hours_by_name": [{"name": n, "hours": h} for n, h in s.hours_by_name],
        "pending_review": len(pending_tasks(planner.state)),
    }
    return json.dumps(result, indent=2)


@mcp.tool()
def get_pending_cleanup() -> str:
    """Tasks whose slot expired and that are waiting for keep_task or discard_task."""
    planner = _open()
    pending = pending_tasks(planner.state)
    if not pending:
        return "No tasks awaiting review."
    return json.dumps([_task_to_dict(t) for t in pending], indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
