"""Planner session: owns the schedule state and persists every change.

Every mutation goes through :meth:`Planner.apply`, which runs an engine
function, normalizes the task list and saves. Engine rejections leave the
state untouched. A failed save is logged and reported but never rolled
back: the in-memory state stays authoritative for the session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from weekplan import allocation, lifecycle, presets, slots
from weekplan.ids import IdGenerator, RandomIds
from weekplan.lifecycle import SweepResult
from weekplan.models import SavedSlotList, ScheduleState, Weekday
from weekplan.normalize import normalize_tasks
from weekplan.persistence import Store

logger = logging.getLogger(__name__)


class Planner:
    def __init__(
        self,
        store: Store | None = None,
        ids: IdGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store or Store()
        self.ids = ids or RandomIds()
        self.clock = clock or datetime.now
        self.state = ScheduleState()
        self.last_save_ok = True

    @classmethod
    def open(
        cls,
        store: Store | None = None,
        ids: IdGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> Planner:
        planner = cls(store, ids, clock)
        planner.load()
        return planner

    def load(self) -> SweepResult:
        """Read the stored schedule, migrate legacy data and sweep once."""
        state, migrated = self.store.load_state(self.ids)
        if migrated:
            logger.info("Migrated %d legacy no-time task name(s)", migrated)
        self.state = state.with_tasks(normalize_tasks(state.tasks))
        return self.tick()

    # ------------------------------------------------------------------
    # Core plumbing
    # ------------------------------------------------------------------

    def apply(self, op: Callable[..., ScheduleState | None], *args) -> bool:
        """Run an engine function against the current state.

        Returns False when the engine rejected the request.
        """
        new_state = op(self.state, *args)
        if new_state is None:
            logger.debug("%s%r rejected", op.__name__, args)
            return False
        self._commit(new_state)
        return True

    def _commit(self, new_state: ScheduleState) -> None:
        self.state = new_state.with_tasks(normalize_tasks(new_state.tasks))
        self.persist()

    def persist(self) -> bool:
        try:
            self.store.save_state(self.state)
        except OSError as e:
            logger.warning("Failed to save schedule to %s: %s", self.store.db_path, e)
            self.last_save_ok = False
            return False
        self.last_save_ok = True
        return True

    def tick(self, now: datetime | None = None) -> SweepResult:
        """Run the expiry sweep; saves only if something expired."""
        result = lifecycle.tick(self.state, now or self.clock())
        if result.changed:
            logger.info(
                "Reclaimed %d expired slot(s), %d task(s) awaiting review",
                len(result.removed_slot_ids),
                len(result.staged_task_ids),
            )
            self._commit(result.state)
        return result

    @property
    def needs_review(self) -> bool:
        return lifecycle.needs_review(self.state)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def create_slot(self, day: Weekday | str, start: str, end: str) -> bool:
        return self.apply(slots.create_slot, day, start, end, self.ids)

    def update_slot(self, slot_id: str, day: Weekday | str, start: str, end: str) -> bool:
        return self.apply(slots.update_slot, slot_id, day, start, end)

    def duplicate_slot(self, slot_id: str) -> bool:
        return self.apply(slots.duplicate_slot, slot_id, self.ids)

    def delete_slots(self, slot_ids: Iterable[str]) -> bool:
        return self.apply(slots.delete_slots, list(slot_ids))

    def bulk_duplicate(self, slot_ids: Iterable[str]) -> bool:
        return self.apply(slots.bulk_duplicate, list(slot_ids), self.ids)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(self, name: str, duration: float | str, tags: Iterable[str] = ()) -> bool:
        return self.apply(allocation.add_task, name, duration, self.ids, list(tags))

    def add_no_time_task(self, name: str) -> bool:
        return self.apply(allocation.add_no_time_task, name, self.ids)

    def edit_task(self, task_id: str, name: str, duration: float | str) -> bool:
        return self.apply(allocation.edit_task, task_id, name, duration)

    def duplicate_task(self, task_id: str) -> bool:
        return self.apply(allocation.duplicate_task, task_id, self.ids)

    def delete_task(self, task_id: str) -> bool:
        return self.apply(allocation.delete_task, task_id)

    def assign(self, task_id: str, slot_id: str) -> bool:
        return self.apply(allocation.assign, task_id, slot_id, self.ids)

    def unassign(self, task_id: str) -> bool:
        return self.apply(allocation.unassign, task_id)

    def merge(self, source_id: str, target_id: str) -> bool:
        return self.apply(allocation.merge_on_drop, source_id, target_id)

    def toggle_postpone(self, task_id: str) -> bool:
        return self.apply(allocation.toggle_postpone, task_id)

    def empty_slots(self) -> bool:
        return self.apply(allocation.empty_slots)

    def reset(self) -> bool:
        return self.apply(allocation.reset_schedule)

    # ------------------------------------------------------------------
    # Pending-cleanup review
    # ------------------------------------------------------------------

    def keep(self, task_id: str) -> bool:
        return self.apply(lifecycle.keep, task_id)

    def discard(self, task_id: str) -> bool:
        return self.apply(lifecycle.discard, task_id)

    def keep_all(self) -> bool:
        return self.apply(lifecycle.confirm_return_all)

    def discard_all(self) -> bool:
        return self.apply(lifecycle.confirm_delete_all)

    # ------------------------------------------------------------------
    # Saved slot lists
    # ------------------------------------------------------------------

    def save_slot_list(self, name: str) -> SavedSlotList | None:
        created = presets.create_slot_list(name, self.state.slots.values(), self.ids)
        if created is None:
            return None
        self.store.save_slot_lists([*self.store.load_slot_lists(), created])
        return created

    def rename_slot_list(self, list_id: str, name: str) -> bool:
        updated = presets.rename_slot_list(self.store.load_slot_lists(), list_id, name)
        if updated is None:
            return False
        self.store.save_slot_lists(updated)
        return True

    def delete_slot_list(self, list_id: str) -> bool:
        remaining = presets.delete_slot_list(self.store.load_slot_lists(), list_id)
        if remaining is None:
            return False
        self.store.save_slot_lists(remaining)
        return True

    def load_slot_list(self, list_id: str) -> bool:
        saved = presets.find_slot_list(self.store.load_slot_lists(), list_id)
        if saved is None:
            return False
        return self.apply(slots.load_slot_list, saved)
