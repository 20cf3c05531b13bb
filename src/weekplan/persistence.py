"""JSON file persistence for the whole planner document."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from weekplan.budget import Budget
from weekplan.challenge import MoneyChallenge
from weekplan.ids import IdGenerator
from weekplan.models import SavedSlotList, ScheduleState, Task, TaskKind
from weekplan.slots import detach_tasks

DEFAULT_DB_FILE = "weekplan.json"
DB_ENV_VAR = "WEEKPLAN_DB"

logger = logging.getLogger(__name__)


class StoreError(ValueError):
    """The database file exists but cannot be parsed."""


def migrate_no_time_names(
    state: ScheduleState,
    names: list[str],
    ids: IdGenerator,
) -> tuple[ScheduleState, int]:
    """Turn legacy no-time task names into no-time tasks.

    Names that already exist as a no-time task (case-insensitive) are
    skipped, so loading the same document twice migrates nothing new.
    """
    known = {t.name.strip().lower() for t in state.tasks.values() if t.is_no_time}
    tasks = dict(state.tasks)
    migrated = 0
    for raw in names:
        name = raw.strip() if isinstance(raw, str) else ""
        if not name or name.lower() in known:
            continue
        task = Task(id=ids.next_id("task"), name=name, duration=0, kind=TaskKind.NO_TIME)
        tasks[task.id] = task
        known.add(name.lower())
        migrated += 1
    return state.with_tasks(tasks), migrated


class Store:
    """Reads and writes the planner database (one JSON file).

    The document holds the schedule (slots + tasks), saved slot lists, the
    money challenge and the budget. Each save rewrites only its own section
    and keeps the rest of the file as it was.
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path or os.getenv(DB_ENV_VAR) or DEFAULT_DB_FILE)

    def _read(self) -> dict:
        if not self.db_path.exists():
            return {}
        text = self.db_path.read_text()
        if not text.strip():
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreError(f"{self.db_path} is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise StoreError(f"{self.db_path} does not hold a JSON object")
        return raw

    def _write(self, raw: dict) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path.write_text(json.dumps(raw, indent=2))

    def _update(self, **sections) -> None:
        raw = self._read()
        raw.update(sections)
        self._write(raw)

    # -- schedule -----------------------------------------------------------

    def load_state(self, ids: IdGenerator) -> tuple[ScheduleState, int]:
        """Return (state, number of legacy no-time names migrated)."""
        raw = self._read()
        state = ScheduleState.from_dict(raw)
        dangling = {
            t.assigned_slot_id for t in state.tasks.values() if t.assigned_slot_id
        } - set(state.slots)
        if dangling:
            logger.info("Unassigned tasks pointing at %d missing slot(s)", len(dangling))
            state = state.with_tasks(detach_tasks(state.tasks, dangling))
        legacy = raw.get("noTimeTasks")
        if not isinstance(legacy, list):
            return state, 0
        return migrate_no_time_names(state, legacy, ids)

    def save_state(self, state: ScheduleState) -> None:
        d = state.to_dict()
        no_time = [t.name for t in state.tasks.values() if t.is_no_time and not t.is_pending]
        self._update(slots=d["slots"], tasks=d["tasks"], noTimeTasks=no_time)

    # -- saved slot lists ---------------------------------------------------

    def load_slot_lists(self) -> list[SavedSlotList]:
        return [SavedSlotList.from_dict(d) for d in self._read().get("savedSlotLists") or []]

    def save_slot_lists(self, lists: list[SavedSlotList]) -> None:
        self._update(savedSlotLists=[sl.to_dict() for sl in lists])

    # -- money challenge ----------------------------------------------------

    def load_money_challenge(self) -> MoneyChallenge:
        return MoneyChallenge.from_dict(self._read().get("moneyChallenge"))

    def save_money_challenge(self, challenge: MoneyChallenge) -> None:
        self._update(moneyChallenge=challenge.to_dict())

    # -- budget -------------------------------------------------------------

    def load_budget(self) -> Budget:
        return Budget.from_dict(self._read().get("budget"))

    def save_budget(self, budget: Budget) -> None:
        self._update(budget=budget.to_dict())
