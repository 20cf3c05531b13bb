"""Id generation for slots, tasks and saved slot lists."""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Protocol


class IdGenerator(Protocol):
    def next_id(self, prefix: str) -> str: ...


class RandomIds:
    """Short random ids, e.g. ``task-3f9a1c2``."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:7]}"


class SequentialIds:
    """Deterministic ``<prefix>-N`` ids, numbered per prefix."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)

    def next_id(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return f"{prefix}-{self._counters[prefix]}"
