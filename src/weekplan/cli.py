"""Typer CLI for weekplan."""

from __future__ import annotations

import logging
import os
import time
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from weekplan.allocation import (
    no_time_tasks,
    required_tasks,
    slot_usage,
    sorted_tasks,
    summarize,
)
from weekplan.budget import Entry, Transfer, account_balances, sanitize_accounts
from weekplan.challenge import CELL_COUNT, GRID_ROWS
from weekplan.ids import RandomIds
from weekplan.lifecycle import SWEEP_INTERVAL_SECONDS, pending_tasks
from weekplan.models import Task
from weekplan.persistence import Store, StoreError
from weekplan.planner import Planner

LOG_LEVEL_ENV_VAR = "WEEKPLAN_LOG_LEVEL"

app = typer.Typer(
    name="weekplan",
    help="Weekly time slots, task allocation and a small budget, from the command line.",
    no_args_is_help=True,
)
slot_app = typer.Typer(help="Manage weekly time slots and saved slot lists.", no_args_is_help=True)
task_app = typer.Typer(help="Manage tasks and place them into slots.", no_args_is_help=True)
cleanup_app = typer.Typer(help="Review tasks whose slot has expired.", no_args_is_help=True)
challenge_app = typer.Typer(help="Money challenge grid.", no_args_is_help=True)
budget_app = typer.Typer(help="Accounts and transactions.", no_args_is_help=True)
app.add_typer(slot_app, name="slot")
app.add_typer(task_app, name="task")
app.add_typer(cleanup_app, name="cleanup")
app.add_typer(challenge_app, name="challenge")
app.add_typer(budget_app, name="budget")

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    level = "INFO" if verbose else os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log sweep and save details")] = False,
) -> None:
    """Weekly time slots, task allocation and a small budget."""
    _configure_logging(verbose)


def _get_store() -> Store:
    return Store()


def _open_planner() -> Planner:
    """Load the schedule (which also runs the expiry sweep)."""
    planner = Planner(_get_store())
    try:
        result = planner.load()
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if result.removed_slot_ids:
        console.print(f"[yellow]{len(result.removed_slot_ids)} slot(s) have passed and were removed.[/yellow]")
    if planner.needs_review:
        console.print(
            f"[yellow]{len(pending_tasks(planner.state))} task(s) awaiting review. "
            "Run 'weekplan cleanup list'.[/yellow]"
        )
    return planner


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and name."""
    try:
        state, _ = Store().load_state(RandomIds())
    except (OSError, StoreError):
        return []
    q = incomplete.lower()
    return [
        f"{t.name} ({tid})"
        for tid, t in state.tasks.items()
        if q in tid.lower() or q in t.name.lower()
    ]


def _parse_id(arg: str) -> str:
    """Extracts the ID if the user used the autocompleted 'Name (ID)' format."""
    if "(" in arg and arg.endswith(")"):
        return arg.split("(")[-1].strip(")")
    return arg.strip()


def _done(planner: Planner, ok: bool, message: str, rejected: str) -> None:
    if not ok:
        console.print(f"[red]{rejected}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{message}[/green]")
    if not planner.last_save_ok:
        console.print("[yellow]Warning: changes could not be saved to disk.[/yellow]")


def _fmt_hours(hours: float) -> str:
    return f"{hours:g}h"


def _task_flags(task: Task) -> str:
    flags = list(task.tags)
    if task.postponed:
        flags.append("postponed")
    return ", ".join(flags) or "-"


# ---------------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------------


@slot_app.command("add")
def slot_add(
    day: Annotated[str, typer.Argument(help="Weekday, e.g. Monday or mon")],
    start: Annotated[str, typer.Argument(help="Start time HH:mm")],
    end: Annotated[str, typer.Argument(help="End time HH:mm (same day, after start)")],
) -> None:
    """Add a time slot."""
    planner = _open_planner()
    _done(
        planner,
        planner.create_slot(day, start, end),
        f"Added {day} {start}-{end}.",
        f"Invalid slot: '{day}' {start}-{end}. End must be after start on a known weekday.",
    )


@slot_app.command("edit")
def slot_edit(slot_id: str, day: str, start: str, end: str) -> None:
    """Change a slot's day and times."""
    planner = _open_planner()
    _done(
        planner,
        planner.update_slot(slot_id, day, start, end),
        f"Updated {slot_id}.",
        f"Cannot update {slot_id}: unknown slot, bad time range, or too small for its tasks.",
    )


@slot_app.command("dup")
def slot_dup(slot_ids: Annotated[list[str], typer.Argument(help="Slot IDs to copy")]) -> None:
    """Duplicate one or more slots."""
    planner = _open_planner()
    _done(planner, planner.bulk_duplicate(slot_ids), f"Duplicated {len(slot_ids)} slot(s).", "No such slot.")


@slot_app.command("rm")
def slot_rm(slot_ids: Annotated[list[str], typer.Argument(help="Slot IDs to delete")]) -> None:
    """Delete slots. Their tasks go back to the unassigned pool."""
    planner = _open_planner()
    _done(planner, planner.delete_slots(slot_ids), "Deleted slot(s).", "No such slot.")


@slot_app.command("list")
def slot_list() -> None:
    """List slots in week order with their tasks and free hours."""
    planner = _open_planner()
    usage = slot_usage(planner.state)
    if not usage:
        console.print("No slots found.")
        return

    table = Table(title="Slots")
    table.add_column("ID")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Hours")
    table.add_column("Free")
    table.add_column("Tasks")
    for u in usage:
        table.add_row(
            u.slot.id,
            u.slot.day.value,
            f"{u.slot.start}-{u.slot.end}",
            _fmt_hours(u.slot.hours),
            "full" if u.is_full else _fmt_hours(u.remaining),
            ", ".join(f"{t.name} ({_fmt_hours(t.duration)})" for t in u.tasks) or "-",
            style="dim" if u.is_full else None,
        )
    console.print(table)


@slot_app.command("save-list")
def slot_save_list(name: str) -> None:
    """Save the current slots as a named list."""
    planner = _open_planner()
    saved = planner.save_slot_list(name)
    if saved is None:
        console.print("[red]Need a name and at least one slot to save a list.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Saved \"{saved.name}\" as {saved.id} ({len(saved.slots)} slot(s)).[/green]")


@slot_app.command("lists")
def slot_lists() -> None:
    """Show saved slot lists."""
    lists = _get_store().load_slot_lists()
    if not lists:
        console.print("No saved slot lists.")
        return
    table = Table(title="Saved slot lists")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Slots")
    for sl in lists:
        table.add_row(sl.id, sl.name, str(len(sl.slots)))
    console.print(table)


@slot_app.command("load-list")
def slot_load_list(list_id: str) -> None:
    """Replace the current slots with a saved list."""
    planner = _open_planner()
    _done(planner, planner.load_slot_list(list_id), f"Loaded {list_id}.", f"Slot list {list_id} not found.")


@slot_app.command("rename-list")
def slot_rename_list(list_id: str, name: str) -> None:
    """Rename a saved slot list."""
    planner = _open_planner()
    _done(
        planner,
        planner.rename_slot_list(list_id, name),
        f"Renamed {list_id}.",
        f"Cannot rename {list_id}: not found, or the name is empty or unchanged.",
    )


@slot_app.command("drop-list")
def slot_drop_list(list_id: str) -> None:
    """Delete a saved slot list."""
    planner = _open_planner()
    _done(planner, planner.delete_slot_list(list_id), f"Deleted {list_id}.", f"Slot list {list_id} not found.")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@task_app.command("add")
def task_add(
    name: str,
    duration: Annotated[float, typer.Option("--duration", "-d", help="Duration in hours")],
    tags: Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Tag (repeatable)")] = None,
) -> None:
    """Add a task to the unassigned pool."""
    planner = _open_planner()
    _done(
        planner,
        planner.add_task(name, duration, tags or []),
        f"Added '{name.strip()}' ({_fmt_hours(duration)}).",
        "A task needs a name and a positive duration.",
    )


@task_app.command("no-time")
def task_no_time(name: str) -> None:
    """Add a task with no time requirement."""
    planner = _open_planner()
    _done(planner, planner.add_no_time_task(name), f"Added no-time task '{name.strip()}'.", "A task needs a name.")


@task_app.command("edit")
def task_edit(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    name: Annotated[Optional[str], typer.Option(help="New task name")] = None,
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="New duration in hours")] = None,
) -> None:
    """Rename or resize a task."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    task = planner.state.tasks.get(task_id)
    if task is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    _done(
        planner,
        planner.edit_task(task_id, name if name is not None else task.name,
                          duration if duration is not None else task.duration),
        f"Updated {task_id}.",
        f"Cannot update {task_id}: empty name, non-positive duration, or it would overflow its slot.",
    )


@task_app.command("dup")
def task_dup(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Duplicate a task; the copy is unassigned."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    _done(planner, planner.duplicate_task(task_id), f"Duplicated {task_id}.", f"Task {task_id} not found.")


@task_app.command("rm")
def task_rm(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a task."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    _done(planner, planner.delete_task(task_id), f"Deleted {task_id}.", f"Task {task_id} not found.")


@task_app.command("assign")
def task_assign(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    slot_id: str,
) -> None:
    """Place a task into a slot, splitting it if only part fits."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    ok = planner.assign(task_id, slot_id)
    left = planner.state.tasks.get(task_id)
    message = f"Assigned {task_id} to {slot_id}."
    if ok and left is not None and left.assigned_slot_id is None:
        message = f"Split {task_id}: {_fmt_hours(left.duration)} left unassigned, the rest placed in {slot_id}."
    _done(planner, ok, message, f"Cannot assign {task_id} to {slot_id}: slot is full or the id is unknown.")


@task_app.command("unassign")
def task_unassign(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Return a task to the unassigned pool."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    _done(planner, planner.unassign(task_id), f"Unassigned {task_id}.", f"Task {task_id} not found.")


@task_app.command("merge")
def task_merge(
    source_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    target_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
) -> None:
    """Fold SOURCE into TARGET (names must match)."""
    source_id, target_id = _parse_id(source_id), _parse_id(target_id)
    planner = _open_planner()
    _done(
        planner,
        planner.merge(source_id, target_id),
        f"Merged {source_id} into {target_id}.",
        "Only two different tasks with the same name can be merged.",
    )


@task_app.command("postpone")
def task_postpone(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Toggle the postponed flag."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    # The id may be folded into a matching row, so read the flag up front
    before = planner.state.tasks.get(task_id)
    ok = planner.toggle_postpone(task_id)
    state = "active" if before is not None and before.postponed else "postponed"
    _done(planner, ok, f"{task_id} is now {state}.", f"Task {task_id} not found.")


@task_app.command("list")
def task_list(
    search: Annotated[Optional[str], typer.Option("--search", "-q", help="Filter by name (case-insensitive substring match)")] = None,
) -> None:
    """List tasks: unassigned first, then by name."""
    planner = _open_planner()
    tasks = sorted_tasks(required_tasks(planner.state))
    extras = no_time_tasks(planner.state)
    if search:
        q = search.lower()
        tasks = [t for t in tasks if q in t.name.lower()]
        extras = [t for t in extras if q in t.name.lower()]
    if not tasks and not extras:
        console.print("No tasks found.")
        return

    if tasks:
        table = Table(title="Tasks")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Hours")
        table.add_column("Slot")
        table.add_column("Flags")
        for t in tasks:
            slot = planner.state.slots.get(t.assigned_slot_id or "")
            table.add_row(
                t.id,
                t.name,
                _fmt_hours(t.duration),
                f"{slot.day.value[:3]} {slot.start}-{slot.end}" if slot else "-",
                _task_flags(t),
                style="dim" if t.postponed else None,
            )
        console.print(table)

    if extras:
        console.print("\n[bold]No-time tasks[/bold]")
        for t in extras:
            console.print(f"  {t.id}  {t.name}")


@app.command()
def empty(yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False) -> None:
    """Unassign every task from its slot."""
    planner = _open_planner()
    if not yes and not typer.confirm("Unassign all tasks from their time slots?"):
        raise typer.Abort()
    _done(planner, planner.empty_slots(), "All tasks unassigned.", "No tasks are assigned.")


@app.command()
def reset(yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False) -> None:
    """Clear all slots and tasks."""
    planner = _open_planner()
    if not yes and not typer.confirm("Clear all time slots and tasks? This cannot be undone."):
        raise typer.Abort()
    _done(planner, planner.reset(), "Schedule cleared.", "Nothing to clear.")


@app.command()
def status() -> None:
    """Hours dashboard: slot capacity versus task demand."""
    planner = _open_planner()
    s = summarize(planner.state)

    diff_style = "green" if s.hour_difference >= 0 else "red"
    console.print("\n[bold underline]Week Status[/bold underline]\n")
    console.print(f"  Slots:     {len(planner.state.slots)}  ({_fmt_hours(s.total_slot_hours)} available)")
    console.print(
        f"  Tasks:     {_fmt_hours(s.total_task_hours)} required  "
        f"({_fmt_hours(s.assigned_hours)} assigned, {_fmt_hours(s.unassigned_hours)} unassigned)"
    )
    if s.postponed_hours:
        console.print(f"  Postponed: {_fmt_hours(s.postponed_hours)}")
    console.print(f"  Balance:   [{diff_style}]{s.hour_difference:+g}h[/{diff_style}]")

    if s.hours_by_name:
        console.print("\n  [bold]By name[/bold]")
        for name, hours in s.hours_by_name:
            console.print(f"    {name}: {_fmt_hours(hours)}")
    console.print()


@app.command()
def sweep() -> None:
    """Remove slots that have passed this week and stage their tasks for review."""
    planner = _open_planner()
    if not planner.needs_review:
        console.print("[green]Nothing to review.[/green]")


@app.command()
def watch(
    interval: Annotated[int, typer.Option(min=0, help="Seconds between sweeps")] = SWEEP_INTERVAL_SECONDS,
    count: Annotated[Optional[int], typer.Option(min=1, help="Stop after this many sweeps")] = None,
) -> None:
    """Sweep expired slots on a fixed interval until interrupted."""
    planner = _open_planner()
    runs = 0
    while count is None or runs < count:
        time.sleep(interval)
        result = planner.load()
        runs += 1
        if result.removed_slot_ids:
            console.print(
                f"[yellow]Removed {len(result.removed_slot_ids)} expired slot(s); "
                f"{len(result.staged_task_ids)} task(s) awaiting review.[/yellow]"
            )


# ---------------------------------------------------------------------------
# Pending-cleanup review
# ---------------------------------------------------------------------------


@cleanup_app.command("list")
def cleanup_list() -> None:
    """Show tasks whose slot has expired."""
    planner = _open_planner()
    pending = pending_tasks(planner.state)
    if not pending:
        console.print("No tasks awaiting review.")
        return
    table = Table(title="Awaiting review")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Hours")
    for t in pending:
        table.add_row(t.id, t.name, _fmt_hours(t.duration))
    console.print(table)


@cleanup_app.command("keep")
def cleanup_keep(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Return a reviewed task to the unassigned pool."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    _done(planner, planner.keep(task_id), f"Kept {task_id}.", f"{task_id} is not awaiting review.")


@cleanup_app.command("discard")
def cleanup_discard(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a reviewed task."""
    task_id = _parse_id(task_id)
    planner = _open_planner()
    _done(planner, planner.discard(task_id), f"Discarded {task_id}.", f"{task_id} is not awaiting review.")


@cleanup_app.command("keep-all")
def cleanup_keep_all() -> None:
    """Return every reviewed task to the unassigned pool."""
    planner = _open_planner()
    _done(planner, planner.keep_all(), "Returned all tasks to the pool.", "No tasks awaiting review.")


@cleanup_app.command("discard-all")
def cleanup_discard_all() -> None:
    """Delete every task awaiting review."""
    planner = _open_planner()
    _done(planner, planner.discard_all(), "Deleted all tasks awaiting review.", "No tasks awaiting review.")


# ---------------------------------------------------------------------------
# Money challenge
# ---------------------------------------------------------------------------


@challenge_app.command("show")
def challenge_show() -> None:
    """Print the grid; ticked cells are struck through."""
    mc = _get_store().load_money_challenge()
    table = Table(show_header=False, title="Money challenge")
    width = len(GRID_ROWS[0])
    for r, row in enumerate(GRID_ROWS):
        cells = []
        for c, value in enumerate(row):
            index = r * width + c
            cells.append(f"[strike dim]{value}[/strike dim]" if mc.is_selected(index) else str(value))
        table.add_row(*cells)
    console.print(table)
    console.print(f"Saved {mc.saved} of {mc.goal} ({mc.progress_pct:g}%), {mc.remaining} to go.")


@challenge_app.command("toggle")
def challenge_toggle(index: Annotated[int, typer.Argument(help=f"Cell index 0-{CELL_COUNT - 1}, row by row")]) -> None:
    """Tick or untick one cell."""
    store = _get_store()
    mc = store.load_money_challenge()
    if not mc.toggle(index):
        console.print(f"[red]Cell index must be between 0 and {CELL_COUNT - 1}.[/red]")
        raise typer.Exit(1)
    store.save_money_challenge(mc)
    console.print(f"[green]Saved {mc.saved} of {mc.goal}.[/green]")


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


@budget_app.command("show")
def budget_show() -> None:
    """Accounts with their current balances."""
    budget = _get_store().load_budget()
    if not budget.accounts:
        console.print("No accounts found.")
        return
    balances = account_balances(budget)
    table = Table(title="Accounts")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Initial")
    table.add_column("Balance")
    for a in budget.accounts:
        bal = balances[a.id]
        table.add_row(a.id, a.name, f"{a.initial:.2f}", f"{bal:.2f}", style="red" if bal < 0 else None)
    console.print(table)
    console.print(
        f"[dim]{len(budget.expense_transactions)} expense(s), "
        f"{len(budget.income_transactions)} income, "
        f"{len(budget.transfer_transactions)} transfer(s)[/dim]"
    )


@budget_app.command("account")
def budget_account(
    account_id: str,
    name: str,
    initial: Annotated[float, typer.Option(help="Opening balance")] = 0.0,
) -> None:
    """Add an account, or rename / reset an existing one."""
    store = _get_store()
    budget = store.load_budget()
    rows = [a.to_dict() for a in budget.accounts if a.id != account_id.strip()]
    rows.append({"id": account_id, "name": name, "initial": initial})
    accounts = sanitize_accounts(rows)
    if len(accounts) != len(rows):
        console.print("[red]An account needs an id and a name.[/red]")
        raise typer.Exit(1)
    budget.accounts = accounts
    store.save_budget(budget)
    console.print(f"[green]Saved account {account_id.strip()}.[/green]")


def _require_account(account_ids: set[str], account_id: str) -> None:
    if account_id not in account_ids:
        console.print(f"[red]Account {account_id} not found.[/red]")
        raise typer.Exit(1)


@budget_app.command("record")
def budget_record(
    kind: Annotated[str, typer.Argument(help="expense or income")],
    account_id: str,
    amount: float,
    category: Annotated[Optional[str], typer.Option(help="Category ID")] = None,
    date: Annotated[Optional[str], typer.Option(help="Date (YYYY-MM-DD)")] = None,
    note: Annotated[Optional[str], typer.Option(help="Free-text note")] = None,
) -> None:
    """Record an expense or an income."""
    if kind not in ("expense", "income"):
        console.print("[red]Kind must be 'expense' or 'income'.[/red]")
        raise typer.Exit(1)
    store = _get_store()
    budget = store.load_budget()
    _require_account({a.id for a in budget.accounts}, account_id)
    entry = Entry(
        id=RandomIds().next_id(kind),
        account_id=account_id,
        amount=amount,
        category_id=category,
        date=date,
        note=note,
    )
    target = budget.expense_transactions if kind == "expense" else budget.income_transactions
    target.append(entry)
    store.save_budget(budget)
    console.print(f"[green]Recorded {kind} {entry.id}.[/green]")


@budget_app.command("transfer")
def budget_transfer(
    from_account: str,
    to_account: str,
    amount: float,
    date: Annotated[Optional[str], typer.Option(help="Date (YYYY-MM-DD)")] = None,
    note: Annotated[Optional[str], typer.Option(help="Free-text note")] = None,
) -> None:
    """Move money between two accounts."""
    store = _get_store()
    budget = store.load_budget()
    known = {a.id for a in budget.accounts}
    _require_account(known, from_account)
    _require_account(known, to_account)
    tx = Transfer(
        id=RandomIds().next_id("transfer"),
        from_account_id=from_account,
        to_account_id=to_account,
        amount=amount,
        date=date,
        note=note,
    )
    budget.transfer_transactions.append(tx)
    store.save_budget(budget)
    console.print(f"[green]Recorded transfer {tx.id}.[/green]")


if __name__ == "__main__":
    app()
