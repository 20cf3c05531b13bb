"""Money challenge: a fixed grid of amounts the user ticks off as saved."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

GRID_ROWS: tuple[tuple[int, ...], ...] = (
    (60, 20, 40, 120, 140, 300, 300, 200, 120, 400),
    (40, 100, 20, 160, 120, 140, 140, 300, 200, 120),
    (100, 40, 100, 20, 160, 120, 120, 140, 300, 200),
    (40, 100, 20, 100, 20, 20, 160, 120, 20, 300),
    (120, 140, 120, 60, 20, 100, 100, 20, 100, 100),
    (80, 20, 60, 200, 100, 20, 100, 100, 20, 20),
    (80, 160, 400, 60, 100, 40, 40, 100, 20, 160),
    (120, 60, 400, 80, 160, 100, 100, 40, 100, 20),
    (200, 400, 120, 80, 40, 60, 60, 100, 40, 100),
)
GRID_VALUES: tuple[int, ...] = tuple(v for row in GRID_ROWS for v in row)
CELL_COUNT = len(GRID_VALUES)


def sanitize_selection(values: Iterable) -> list[int]:
    """Keep valid cell indices only, unique and sorted."""
    valid = {
        v for v in values
        if isinstance(v, int) and not isinstance(v, bool) and 0 <= v < CELL_COUNT
    }
    return sorted(valid)


@dataclass
class MoneyChallenge:
    selected: list[int] = field(default_factory=list)

    @property
    def saved(self) -> int:
        return sum(GRID_VALUES[i] for i in self.selected)

    @property
    def goal(self) -> int:
        return sum(GRID_VALUES)

    @property
    def remaining(self) -> int:
        return self.goal - self.saved

    @property
    def progress_pct(self) -> float:
        return round(self.saved / self.goal * 100, 1)

    def is_selected(self, index: int) -> bool:
        return index in self.selected

    def toggle(self, index: int) -> bool:
        """Flip one cell. Returns False for an index outside the grid."""
        if not 0 <= index < CELL_COUNT:
            return False
        chosen = set(self.selected)
        chosen ^= {index}
        self.selected = sorted(chosen)
        return True

    def to_dict(self) -> dict:
        return {"selected": list(self.selected)}

    @classmethod
    def from_dict(cls, d: dict | None) -> MoneyChallenge:
        raw = (d or {}).get("selected")
        return cls(selected=sanitize_selection(raw if isinstance(raw, list) else []))
