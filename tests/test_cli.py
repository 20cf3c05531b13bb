import json
import tempfile
from datetime import datetime

import pytest
from typer.testing import CliRunner

import weekplan.planner
from weekplan.cli import app

runner = CliRunner()


class FrozenDatetime(datetime):
    frozen = datetime(2026, 10, 11, 7, 0)  # Sunday morning, nothing expired yet

    @classmethod
    def now(cls, tz=None):
        return cls.frozen


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    monkeypatch.setattr(weekplan.planner, "datetime", FrozenDatetime)
    monkeypatch.setattr(FrozenDatetime, "frozen", datetime(2026, 10, 11, 7, 0))
    monkeypatch.delenv("WEEKPLAN_DB", raising=False)


def _db() -> dict:
    with open("weekplan.json") as f:
        return json.load(f)


def _only_id(section: str) -> str:
    rows = _db()[section]
    assert len(rows) == 1
    return rows[0]["id"]


def test_weekplan_assign_and_split(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)

        result = runner.invoke(app, ["slot", "add", "Monday", "09:00", "11:00"])
        assert result.exit_code == 0, result.stdout
        assert "Added Monday 09:00-11:00." in result.stdout
        slot_id = _only_id("slots")

        runner.invoke(app, ["task", "add", "Deep work", "-d", "1.5"])
        first = _only_id("tasks")
        result = runner.invoke(app, ["task", "assign", first, slot_id])
        assert result.exit_code == 0, result.stdout

        runner.invoke(app, ["task", "add", "Email", "-d", "1"])
        email = next(t["id"] for t in _db()["tasks"] if t["name"] == "Email")
        result = runner.invoke(app, ["task", "assign", email, slot_id])
        assert result.exit_code == 0, result.stdout
        assert "Split" in result.stdout

        tasks = _db()["tasks"]
        placed = [t for t in tasks if t["assignedSlotId"] == slot_id]
        assert sum(t["duration"] for t in placed) == 2.0
        left = next(t for t in tasks if t["id"] == email)
        assert left["duration"] == 0.5
        assert left["assignedSlotId"] is None

        # Slot is now full
        runner.invoke(app, ["task", "add", "Gym", "-d", "1"])
        gym = next(t["id"] for t in _db()["tasks"] if t["name"] == "Gym")
        result = runner.invoke(app, ["task", "assign", gym, slot_id])
        assert result.exit_code == 1
        assert "full" in result.stdout


def test_weekplan_rejects_bad_slot(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        result = runner.invoke(app, ["slot", "add", "Monday", "11:00", "09:00"])
        assert result.exit_code == 1
        assert "Invalid slot" in result.stdout


def test_weekplan_status_dashboard(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["slot", "add", "Tuesday", "18:00", "20:00"])
        runner.invoke(app, ["task", "add", "Read", "-d", "3"])
        runner.invoke(app, ["task", "no-time", "Call mom"])

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0, result.stdout
        assert "Week Status" in result.stdout
        assert "-1h" in result.stdout

        result = runner.invoke(app, ["task", "list", "-q", "call"])
        assert "Call mom" in result.stdout


def test_weekplan_sweep_and_cleanup(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["slot", "add", "Monday", "09:00", "11:00"])
        slot_id = _only_id("slots")
        runner.invoke(app, ["task", "add", "Email", "-d", "1"])
        task_id = _only_id("tasks")
        runner.invoke(app, ["task", "assign", task_id, slot_id])

        result = runner.invoke(app, ["sweep"])
        assert "Nothing to review." in result.stdout

        # Wednesday noon: Monday's slot is over
        monkeypatch.setattr(FrozenDatetime, "frozen", datetime(2026, 10, 14, 12, 0))
        result = runner.invoke(app, ["sweep"])
        assert result.exit_code == 0, result.stdout
        assert "awaiting review" in result.stdout
        assert _db()["slots"] == []
        assert "__pending_cleanup__" in _db()["tasks"][0]["tags"]

        result = runner.invoke(app, ["cleanup", "keep", task_id])
        assert result.exit_code == 0, result.stdout
        task = _db()["tasks"][0]
        assert task["tags"] == []
        assert task["assignedSlotId"] is None

        result = runner.invoke(app, ["cleanup", "discard", task_id])
        assert result.exit_code == 1


def test_weekplan_merge_and_postpone(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["slot", "add", "Friday", "09:00", "10:00"])
        slot_id = _only_id("slots")
        runner.invoke(app, ["task", "add", "Email", "-d", "0.5"])
        first = _only_id("tasks")
        runner.invoke(app, ["task", "assign", first, slot_id])
        runner.invoke(app, ["task", "add", "email", "-d", "1"])
        second = next(t["id"] for t in _db()["tasks"] if t["id"] != first)

        result = runner.invoke(app, ["task", "merge", second, first])
        assert result.exit_code == 0, result.stdout
        merged = _db()["tasks"]
        assert len(merged) == 1
        assert merged[0]["duration"] == 1.5
        assert merged[0]["assignedSlotId"] is None

        result = runner.invoke(app, ["task", "postpone", f"Email ({first})"])
        assert result.exit_code == 0, result.stdout
        assert "postponed" in result.stdout
        assert _db()["tasks"][0]["postponed"] is True


def test_weekplan_reset_requires_confirmation(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["task", "add", "Email", "-d", "1"])

        result = runner.invoke(app, ["reset"], input="n\n")
        assert result.exit_code == 1
        assert len(_db()["tasks"]) == 1

        result = runner.invoke(app, ["reset", "--yes"])
        assert result.exit_code == 0, result.stdout
        assert _db()["tasks"] == []


def test_weekplan_corrupt_database(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        with open("weekplan.json", "w") as f:
            f.write("{broken")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.stdout


def test_weekplan_saved_slot_lists(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["slot", "add", "Monday", "09:00", "11:00"])
        result = runner.invoke(app, ["slot", "save-list", "Normal"])
        assert result.exit_code == 0, result.stdout
        list_id = _only_id("savedSlotLists")

        slot_id = _only_id("slots")
        runner.invoke(app, ["slot", "rm", slot_id])
        assert _db()["slots"] == []

        result = runner.invoke(app, ["slot", "load-list", list_id])
        assert result.exit_code == 0, result.stdout
        assert _only_id("slots") == slot_id


def test_weekplan_challenge_and_budget(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        result = runner.invoke(app, ["challenge", "toggle", "0"])
        assert result.exit_code == 0, result.stdout
        assert _db()["moneyChallenge"]["selected"] == [0]
        assert runner.invoke(app, ["challenge", "toggle", "90"]).exit_code == 1

        runner.invoke(app, ["budget", "account", "bank", "Bank", "--initial", "100"])
        runner.invoke(app, ["budget", "account", "cash", "Cash"])
        result = runner.invoke(app, ["budget", "record", "expense", "bank", "30"])
        assert result.exit_code == 0, result.stdout
        runner.invoke(app, ["budget", "transfer", "bank", "cash", "20"])

        result = runner.invoke(app, ["budget", "show"])
        assert "50.00" in result.stdout
        assert "20.00" in result.stdout

        result = runner.invoke(app, ["budget", "record", "expense", "ghost", "5"])
        assert result.exit_code == 1


def test_weekplan_watch_sweeps_on_interval(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["slot", "add", "Monday", "09:00", "11:00"])
        runner.invoke(app, ["task", "add", "Email", "-d", "1"])
        runner.invoke(app, ["task", "assign", _only_id("tasks"), _only_id("slots")])

        # The clock moves past the slot between the first load and the sweep
        times = iter([datetime(2026, 10, 11, 7, 0), datetime(2026, 10, 14, 12, 0)])
        monkeypatch.setattr(FrozenDatetime, "now", classmethod(lambda cls, tz=None: next(times)))

        result = runner.invoke(app, ["watch", "--interval", "0", "--count", "1"])
        assert result.exit_code == 0, result.stdout
        assert "Removed 1 expired slot(s)" in result.stdout
        assert _db()["slots"] == []


def test_weekplan_postpone_folds_into_matching_row(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        runner.invoke(app, ["task", "add", "Email", "-d", "1"])
        first = _only_id("tasks")
        runner.invoke(app, ["task", "postpone", first])
        runner.invoke(app, ["task", "add", "Email", "-d", "1"])
        second = next(t["id"] for t in _db()["tasks"] if t["id"] != first)

        result = runner.invoke(app, ["task", "postpone", second])
        assert result.exit_code == 0, result.stdout
        assert f"{second} is now postponed." in result.stdout

        tasks = _db()["tasks"]
        assert len(tasks) == 1
        assert tasks[0]["id"] == first
        assert tasks[0]["duration"] == 2.0
        assert tasks[0]["postponed"] is True
