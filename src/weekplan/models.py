"""Slot, task and schedule state definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

# Reserved tag strings used by the on-disk format to carry task flags.
NO_TIME_TAG = "No time"
PENDING_CLEANUP_TAG = "__pending_cleanup__"
RESERVED_TAGS = frozenset({NO_TIME_TAG, PENDING_CLEANUP_TAG})


class Weekday(enum.StrEnum):
    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @property
    def index(self) -> int:
        """Position in the week, Sunday = 0."""
        return list(Weekday).index(self)

    @classmethod
    def parse(cls, value: str) -> Weekday | None:
        """Case-insensitive lookup; accepts three-letter abbreviations."""
        v = value.strip().lower()
        for day in cls:
            if v in (day.value.lower(), day.value[:3].lower()):
                return day
        return None


class TaskKind(enum.StrEnum):
    NORMAL = "normal"
    NO_TIME = "no_time"  # no duration requirement; never assigned


class TaskLifecycle(enum.StrEnum):
    ACTIVE = "active"
    PENDING_CLEANUP = "pending_cleanup"  # slot was reclaimed; awaiting keep/discard


@dataclass(frozen=True)
class Slot:
    """A weekday time window with a derived capacity in hours."""

    id: str
    day: Weekday
    start: str  # HH:mm
    end: str  # HH:mm
    hours: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "day": self.day.value,
            "start": self.start,
            "end": self.end,
            "hours": self.hours,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Slot:
        day = Weekday.parse(str(d["day"]))
        if day is None:
            raise ValueError(f"unknown weekday {d['day']!r}")
        return cls(
            id=d["id"],
            day=day,
            start=d["start"],
            end=d["end"],
            hours=d["hours"],
        )


def known_slots(raw: list) -> list[Slot]:
    """Load slot rows, skipping any whose weekday is not recognised."""
    return [
        Slot.from_dict(s)
        for s in raw
        if isinstance(s, dict) and Weekday.parse(str(s.get("day", ""))) is not None
    ]


@dataclass(frozen=True)
class Task:
    """A unit of work with a duration, optionally assigned to one slot."""

    id: str
    name: str
    duration: float
    tags: tuple[str, ...] = ()
    assigned_slot_id: str | None = None
    postponed: bool = False
    kind: TaskKind = TaskKind.NORMAL
    lifecycle: TaskLifecycle = TaskLifecycle.ACTIVE

    @property
    def is_no_time(self) -> bool:
        return self.kind == TaskKind.NO_TIME

    @property
    def is_pending(self) -> bool:
        return self.lifecycle == TaskLifecycle.PENDING_CLEANUP

    @property
    def is_required(self) -> bool:
        """Normal, active task: shows up in totals and schedule views."""
        return not self.is_no_time and not self.is_pending

    @property
    def uses_capacity(self) -> bool:
        """Counts against its slot. Postponed tasks still hold their slot."""
        return self.is_required

    def to_dict(self) -> dict:
        tags = list(self.tags)
        if self.is_no_time:
            tags.append(NO_TIME_TAG)
        if self.is_pending:
            tags.append(PENDING_CLEANUP_TAG)
        return {
            "id": self.id,
            "name": self.name,
            "tags": tags,
            "duration": self.duration,
            "assignedSlotId": self.assigned_slot_id,
            "postponed": self.postponed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Task:
        raw_tags = d.get("tags")
        raw_tags = [str(t) for t in raw_tags] if isinstance(raw_tags, list) else []
        user_tags = sorted({t.strip() for t in raw_tags if t.strip() and t.strip() not in RESERVED_TAGS})
        return cls(
            id=d["id"],
            name=d["name"],
            duration=d.get("duration", 0),
            tags=tuple(user_tags),
            assigned_slot_id=d.get("assignedSlotId") or None,
            postponed=bool(d.get("postponed", False)),
            kind=TaskKind.NO_TIME if NO_TIME_TAG in raw_tags else TaskKind.NORMAL,
            lifecycle=(
                TaskLifecycle.PENDING_CLEANUP
                if PENDING_CLEANUP_TAG in raw_tags
                else TaskLifecycle.ACTIVE
            ),
        )


@dataclass(frozen=True)
class SavedSlotList:
    """A named snapshot of a slot collection."""

    id: str
    name: str
    slots: tuple[Slot, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slots": [s.to_dict() for s in self.slots],
        }

    @classmethod
    def from_dict(cls, d: dict) -> SavedSlotList:
        return cls(
            id=d["id"],
            name=d["name"],
            slots=tuple(known_slots(d.get("slots") or [])),
        )


@dataclass(frozen=True)
class ScheduleState:
    """Slot and task registries plus the current slot selection.

    Engine functions never mutate a state; they return a new one.
    """

    slots: dict[str, Slot] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)
    selection: frozenset[str] = frozenset()

    def with_slots(self, slots: dict[str, Slot]) -> ScheduleState:
        return replace(self, slots=slots)

    def with_tasks(self, tasks: dict[str, Task]) -> ScheduleState:
        return replace(self, tasks=tasks)

    def to_dict(self) -> dict:
        return {
            "slots": [s.to_dict() for s in self.slots.values()],
            "tasks": [t.to_dict() for t in self.tasks.values()],
        }

    @classmethod
    def from_dict(cls, d: dict) -> ScheduleState:
        slots = known_slots(d.get("slots") or [])
        tasks = [Task.from_dict(t) for t in d.get("tasks") or []]
        return cls(
            slots={s.id: s for s in slots},
            tasks={t.id: t for t in tasks},
        )
