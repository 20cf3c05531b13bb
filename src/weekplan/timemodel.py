"""HH:mm parsing and hour arithmetic."""

from __future__ import annotations

import math
from datetime import datetime

CAPACITY_EPSILON = 0.001


def round_hours(value: float) -> float:
    """Round to 2 decimals, halves away from zero for positive values."""
    return math.floor(value * 100 + 0.5) / 100


def parse_time(value: str) -> int | None:
    """Convert "HH:mm" to minutes past midnight, or None if unparseable."""
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        h, m = (int(p) for p in parts)
    except ValueError:
        return None
    return h * 60 + m


def compute_hours(start: str, end: str) -> float | None:
    """Slot length in hours; None when either bound is bad or end <= start."""
    start_min = parse_time(start)
    end_min = parse_time(end)
    if start_min is None or end_min is None:
        return None
    if end_min <= start_min:
        return None
    return round_hours((end_min - start_min) / 60)


def weekday_index(dt: datetime) -> int:
    """Day of week with Sunday = 0 (datetime.weekday() has Monday = 0)."""
    return (dt.weekday() + 1) % 7
