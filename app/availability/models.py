from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class BlockedRange:
    """Inclusive day range during which a property is unavailable."""

    start: date
    end: date
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"BlockedRange start {self.start} is after end {self.end}")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }
        if self.label is not None:
            out["summary"] = self.label
        return out


@dataclass(frozen=True)
class AvailabilitySnapshot:
    property_key: str
    ranges: tuple[BlockedRange, ...]
    fetched_at: datetime
    is_stale: bool = False


class BlockedCalendar:
    """
    Day-blocked predicate over a set of ranges.

    A day is blocked if it falls inside any range; overlaps are harmless.
    """

    def __init__(self, ranges: Iterable[BlockedRange] = ()):
        self._ranges: tuple[BlockedRange, ...] = tuple(ranges)

    @property
    def ranges(self) -> tuple[BlockedRange, ...]:
        return self._ranges

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def is_blocked(self, day: date) -> bool:
        return any(r.contains(day) for r in self._ranges)

    def has_blocked_between(self, start: date, end: date) -> bool:
        """True if any day in the inclusive span [start, end] is blocked."""
        if start > end:
            start, end = end, start
        return any(r.start <= end and r.end >= start for r in self._ranges)

    def blocked_dates(self) -> set[date]:
        days: set[date] = set()
        for r in self._ranges:
            cur = r.start
            while cur <= r.end:
                days.add(cur)
                cur += timedelta(days=1)
        return days
