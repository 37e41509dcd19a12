"""Month-grid and day-classification utilities for a club's booking calendar.

Everything here is a pure projection over the data it is given: a club's
operating window, its per-day records, and the caller's booked / selected date
sets.  Nothing is cached or mutated, so a view can be rebuilt from a fresh
snapshot at any time (e.g. after checkout reports that a date has filled up).
"""

from __future__ import annotations

import calendar
import datetime
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class DayState(str, Enum):
    """How a single calendar cell should be presented and whether it is clickable."""

    OUT_OF_RANGE = "out_of_range"
    UNAVAILABLE = "unavailable"
    AVAILABLE = "available"
    BOOKED = "booked"
    SELECTED = "selected"


class SessionStatus(str, Enum):
    """Fill level of a morning or afternoon session."""

    AVAILABLE = "available"
    LOW = "low"
    FULL = "full"


class Direction(str, Enum):
    BACK = "back"
    FORWARD = "forward"


DEFAULT_LOW_RATIO = 0.25


@dataclass(frozen=True)
class ClubWindow:
    """Inclusive date range a club operates over."""

    start_date: datetime.date
    end_date: datetime.date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError(f"Club start {self.start_date} is after end {self.end_date}")

    def contains(self, day: datetime.date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class DayRecord:
    """Capacity and availability for one club day.

    ``morning_booked`` / ``afternoon_booked`` are place counts already taken,
    supplied by the persistence layer.  They only feed the session fill status;
    whether the day can be picked is decided by ``is_available``.
    """

    date: datetime.date
    morning_capacity: int = 0
    afternoon_capacity: int = 0
    is_available: bool = True
    morning_booked: int = 0
    afternoon_booked: int = 0


@dataclass(frozen=True)
class CalendarCell:
    date: datetime.date
    state: DayState
    morning_status: SessionStatus | None = None
    afternoon_status: SessionStatus | None = None

    @property
    def is_clickable(self) -> bool:
        return self.state in (DayState.AVAILABLE, DayState.SELECTED)


@dataclass(frozen=True)
class MonthView:
    """A renderable month: grid cells (``None`` for padding) plus navigation flags."""

    month: datetime.date
    cells: list[CalendarCell | None]
    can_go_back: bool
    can_go_forward: bool


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


def first_of_month(day: datetime.date) -> datetime.date:
    return day.replace(day=1)


def last_of_month(day: datetime.date) -> datetime.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def shift_month(month: datetime.date, step: int) -> datetime.date:
    """Return the first day of the month *step* months away from *month*."""
    index = month.year * 12 + (month.month - 1) + step
    return datetime.date(index // 12, index % 12 + 1, 1)


def parse_month(value: str) -> datetime.date:
    """Parse ``YYYY-MM`` (or a full ISO date) into the first day of that month."""
    if len(value) == 7:
        value = f"{value}-01"
    return first_of_month(datetime.date.fromisoformat(value))


# ---------------------------------------------------------------------------
# Grid + navigation
# ---------------------------------------------------------------------------


def build_month_grid(month: datetime.date) -> list[datetime.date | None]:
    """Return the cells for *month* in a Monday-first, seven-column grid.

    Leading cells before the 1st and trailing cells after the last day are
    ``None`` so the result length is always a multiple of seven.
    """
    month = first_of_month(month)
    leading = month.weekday()  # Monday == 0
    days_in_month = calendar.monthrange(month.year, month.month)[1]

    grid: list[datetime.date | None] = [None] * leading
    grid.extend(month.replace(day=d) for d in range(1, days_in_month + 1))
    trailing = -len(grid) % 7
    grid.extend([None] * trailing)
    return grid


def can_navigate(direction: Direction, current_month: datetime.date, window: ClubWindow) -> bool:
    """Whether the calendar may move one month in *direction*.

    Going back is allowed while the previous month still ends on or after the
    club start; going forward while the next month starts on or before the club
    end.  Partial first / last months therefore stay reachable.
    """
    current_month = first_of_month(current_month)
    if direction is Direction.BACK:
        return last_of_month(shift_month(current_month, -1)) >= window.start_date
    return shift_month(current_month, 1) <= window.end_date


def clamp_month(month: datetime.date, window: ClubWindow) -> datetime.date:
    """Pull *month* into the range of months that overlap the club window."""
    month = first_of_month(month)
    first = first_of_month(window.start_date)
    last = first_of_month(window.end_date)
    return min(max(month, first), last)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def index_days(days: Iterable[DayRecord]) -> dict[datetime.date, DayRecord]:
    return {d.date: d for d in days}


def classify(
    day: datetime.date,
    window: ClubWindow,
    day_map: Mapping[datetime.date, DayRecord],
    booked: Collection[datetime.date] = (),
    selected: Collection[datetime.date] = (),
) -> DayState:
    """Classify *day*; the first matching rule wins.

    out of window > booked > selected > available record > unavailable.
    """
    if not window.contains(day):
        return DayState.OUT_OF_RANGE
    if day in booked:
        return DayState.BOOKED
    if day in selected:
        return DayState.SELECTED
    record = day_map.get(day)
    if record is not None and record.is_available:
        return DayState.AVAILABLE
    return DayState.UNAVAILABLE


def session_status(capacity: int, booked: int, low_ratio: float = DEFAULT_LOW_RATIO) -> SessionStatus:
    remaining = capacity - booked
    if capacity <= 0 or remaining <= 0:
        return SessionStatus.FULL
    if remaining / capacity <= low_ratio:
        return SessionStatus.LOW
    return SessionStatus.AVAILABLE


def build_month_view(
    month: datetime.date,
    window: ClubWindow,
    days: Iterable[DayRecord],
    booked: Collection[datetime.date] = (),
    selected: Collection[datetime.date] = (),
    low_ratio: float = DEFAULT_LOW_RATIO,
) -> MonthView:
    """Project the club's days onto the grid for *month*."""
    month = first_of_month(month)
    day_map = index_days(days)
    booked = frozenset(booked)
    selected = frozenset(selected)

    cells: list[CalendarCell | None] = []
    for slot in build_month_grid(month):
        if slot is None:
            cells.append(None)
            continue
        state = classify(slot, window, day_map, booked, selected)
        record = day_map.get(slot)
        if record is not None and state is not DayState.OUT_OF_RANGE:
            cells.append(
                CalendarCell(
                    date=slot,
                    state=state,
                    morning_status=session_status(record.morning_capacity, record.morning_booked, low_ratio),
                    afternoon_status=session_status(record.afternoon_capacity, record.afternoon_booked, low_ratio),
                )
            )
        else:
            cells.append(CalendarCell(date=slot, state=state))

    return MonthView(
        month=month,
        cells=cells,
        can_go_back=can_navigate(Direction.BACK, month, window),
        can_go_forward=can_navigate(Direction.FORWARD, month, window),
    )
