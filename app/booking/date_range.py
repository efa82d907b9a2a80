"""
Date-range selection over a month grid, constrained by blocked days and
a minimum stay.

The selector is a three-state machine driven only by press(day):

    AWAITING_START --press--> AWAITING_END --press--> COMPLETE
          ^                                              |
          +------------- (press starts a new range) ----+

Illegal presses are refused (the state does not move) and never raise;
the caller reads `last_rejection` to show feedback.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Union

from app.availability.models import BlockedCalendar, BlockedRange

GRID_CELLS = 42  # 6 full weeks, so switching months never resizes the grid

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
DAY_NAMES_SHORT = ["S", "M", "T", "W", "T", "F", "S"]
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class SelectionPhase(str, Enum):
    AWAITING_START = "awaiting_start"
    AWAITING_END = "awaiting_end"
    COMPLETE = "complete"


class Rejection(str, Enum):
    BEFORE_MIN_DATE = "before_min_date"
    BLOCKED_DAY = "blocked_day"
    BLOCKED_IN_RANGE = "blocked_in_range"
    BELOW_MIN_NIGHTS = "below_min_nights"


@dataclass(frozen=True)
class SelectionState:
    start: Optional[date] = None
    end: Optional[date] = None
    selecting_start: bool = True

    @property
    def phase(self) -> SelectionPhase:
        if self.start is not None and self.end is not None:
            return SelectionPhase.COMPLETE
        if self.start is not None:
            return SelectionPhase.AWAITING_END
        return SelectionPhase.AWAITING_START


@dataclass(frozen=True)
class DayCell:
    date: date
    is_current_month: bool
    is_today: bool
    is_disabled: bool
    is_blocked: bool
    selection: Optional[str]  # "start" | "end" | "middle" | "single"
    in_range: bool


class DateRangeSelector:
    def __init__(
        self,
        *,
        min_nights: int,
        blocked: Union[BlockedCalendar, Iterable[BlockedRange]] = (),
        min_date: Optional[date] = None,
        today: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ):
        if min_nights < 0:
            raise ValueError("min_nights must be >= 0")
        self.min_nights = min_nights
        self.blocked = blocked if isinstance(blocked, BlockedCalendar) else BlockedCalendar(blocked)
        self.today = today or date.today()
        self.min_date = min_date
        self.last_rejection: Optional[Rejection] = None

        if start is not None and end is not None and end < start:
            start, end = end, start
        if start is None:
            end = None
        self._state = SelectionState(start=start, end=end, selecting_start=start is None)

        anchor = start or self.today
        self.year = anchor.year
        self.month = anchor.month

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def phase(self) -> SelectionPhase:
        return self._state.phase

    @property
    def start(self) -> Optional[date]:
        return self._state.start

    @property
    def end(self) -> Optional[date]:
        return self._state.end

    @property
    def nights(self) -> Optional[int]:
        if self.start is None or self.end is None:
            return None
        return (self.end - self.start).days

    def is_before_min(self, day: date) -> bool:
        return self.min_date is not None and day < self.min_date

    def is_disabled(self, day: date) -> bool:
        return self.is_before_min(day) or self.blocked.is_blocked(day)

    def _reject(self, reason: Rejection) -> bool:
        self.last_rejection = reason
        return False

    def _begin(self, day: date) -> bool:
        if self.blocked.is_blocked(day):
            return self._reject(Rejection.BLOCKED_DAY)
        self._state = SelectionState(start=day, end=None, selecting_start=False)
        return True

    def press(self, day: date) -> bool:
        """Apply a day press. Returns True if the selection changed."""
        self.last_rejection = None
        if self.is_before_min(day):
            return self._reject(Rejection.BEFORE_MIN_DATE)

        if self.phase is not SelectionPhase.AWAITING_END:
            # AWAITING_START, or COMPLETE where any press starts over
            return self._begin(day)

        anchor = self._state.start
        start, end = (day, anchor) if day < anchor else (anchor, day)

        if self.blocked.has_blocked_between(start, end):
            return self._reject(Rejection.BLOCKED_IN_RANGE)
        if (end - start).days < self.min_nights:
            return self._reject(Rejection.BELOW_MIN_NIGHTS)

        self._state = SelectionState(start=start, end=end, selecting_start=True)
        return True

    def clear(self) -> None:
        self.last_rejection = None
        self._state = SelectionState()

    def find_next_available_end(self, start: date, min_nights: Optional[int] = None) -> Optional[date]:
        """Checkout exactly min_nights after start, or None if a blocked day is in the way."""
        nights = self.min_nights if min_nights is None else min_nights
        candidate = start + timedelta(days=nights)
        if self.blocked.has_blocked_between(start, candidate):
            return None
        return candidate

    # ------------------------------------------------------------------
    # Month grid
    # ------------------------------------------------------------------

    def next_month(self) -> None:
        if self.month == 12:
            self.year, self.month = self.year + 1, 1
        else:
            self.month += 1

    def previous_month(self) -> None:
        if self.month == 1:
            self.year, self.month = self.year - 1, 12
        else:
            self.month -= 1

    @property
    def title(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def _selection_role(self, day: date) -> Optional[str]:
        start, end = self.start, self.end
        if start is None:
            return None
        if end is not None and start == end and day == start:
            return "single"
        if day == start:
            return "start"
        if end is not None:
            if day == end:
                return "end"
            if start < day < end:
                return "middle"
        return None

    def grid(self) -> list[DayCell]:
        """Sunday-first grid of exactly GRID_CELLS days around the visible month."""
        first = date(self.year, self.month, 1)
        lead = (first.weekday() + 1) % 7  # Monday=0 -> Sunday-first column
        grid_start = first - timedelta(days=lead)
        in_range_bounds = (self.start, self.end) if self.start and self.end else None

        cells: list[DayCell] = []
        for offset in range(GRID_CELLS):
            day = grid_start + timedelta(days=offset)
            blocked = self.blocked.is_blocked(day)
            cells.append(DayCell(
                date=day,
                is_current_month=day.month == self.month and day.year == self.year,
                is_today=day == self.today,
                is_disabled=self.is_before_min(day) or blocked,
                is_blocked=blocked,
                selection=self._selection_role(day),
                in_range=bool(in_range_bounds and in_range_bounds[0] <= day <= in_range_bounds[1]),
            ))
        return cells

    def weekday_labels(self, compact: bool = False) -> list[str]:
        return list(DAY_NAMES_SHORT if compact else DAY_NAMES)

    def weeks(self) -> list[list[DayCell]]:
        cells = self.grid()
        return [cells[i:i + 7] for i in range(0, GRID_CELLS, 7)]
