"""Saved slot lists: named snapshots of the slot collection."""

from __future__ import annotations

from collections.abc import Iterable

from weekplan.ids import IdGenerator
from weekplan.models import SavedSlotList, Slot


def find_slot_list(lists: list[SavedSlotList], list_id: str) -> SavedSlotList | None:
    return next((sl for sl in lists if sl.id == list_id), None)


def create_slot_list(
    name: str,
    slots: Iterable[Slot],
    ids: IdGenerator,
) -> SavedSlotList | None:
    """Snapshot *slots* under *name*. Needs a name and at least one slot."""
    trimmed = name.strip()
    snapshot = tuple(slots)
    if not trimmed or not snapshot:
        return None
    return SavedSlotList(id=ids.next_id("slotlist"), name=trimmed, slots=snapshot)


def rename_slot_list(
    lists: list[SavedSlotList], list_id: str, name: str
) -> list[SavedSlotList] | None:
    trimmed = name.strip()
    target = find_slot_list(lists, list_id)
    if target is None or not trimmed or trimmed == target.name:
        return None
    return [
        SavedSlotList(id=sl.id, name=trimmed, slots=sl.slots) if sl.id == list_id else sl
        for sl in lists
    ]


def delete_slot_list(lists: list[SavedSlotList], list_id: str) -> list[SavedSlotList] | None:
    remaining = [sl for sl in lists if sl.id != list_id]
    if len(remaining) == len(lists):
        return None
    return remaining
