"""Task deduplication: fold rows the user cannot tell apart."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from weekplan.models import Task, TaskKind, TaskLifecycle
from weekplan.timemodel import round_hours

TaskKey = tuple[str, str, TaskKind, TaskLifecycle, tuple[str, ...]]


def normalized_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Trim, drop empties, dedupe and sort."""
    return tuple(sorted({t.strip() for t in tags if t.strip()}))


def status_key(task: Task) -> str:
    if task.postponed:
        # Postponed rows in different slots stay apart so no slot gains load
        return f"postponed:{task.assigned_slot_id}" if task.assigned_slot_id else "postponed"
    if task.assigned_slot_id:
        return f"assigned:{task.assigned_slot_id}"
    return "unassigned"


def task_key(task: Task) -> TaskKey:
    name = task.name.strip() or task.name
    return (name.lower(), status_key(task), task.kind, task.lifecycle, normalized_tags(task.tags))


def normalize_tasks(tasks: dict[str, Task]) -> dict[str, Task]:
    """Merge tasks sharing (name, status, flags, tags), summing durations.

    The first task of each group keeps its id and position; later ones are
    absorbed. Running this twice gives the same result as running it once.
    """
    groups: dict[TaskKey, Task] = {}
    for task in tasks.values():
        copy = replace(task, name=task.name.strip() or task.name, tags=normalized_tags(task.tags))
        key = task_key(copy)
        existing = groups.get(key)
        if existing is None:
            groups[key] = copy
        else:
            groups[key] = replace(existing, duration=round_hours(existing.duration + copy.duration))
    return {t.id: t for t in groups.values()}
