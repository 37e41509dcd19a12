from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict

from holiday_club.services.club_calendar import DayState, SessionStatus
from holiday_club.services.selection import OptionType, TimeSlot


class BookingOptionResponse(BaseModel):
    """A purchasable booking mode for a club."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    option_type: OptionType
    time_slot: TimeSlot
    price_per_child: int
    sort_order: int


class ClubResponse(BaseModel):
    """Summary of a holiday club, as shown in listings."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    name: str
    description: str | None = None
    image_url: str | None = None
    start_date: datetime.date
    end_date: datetime.date
    morning_start: datetime.time | None = None
    morning_end: datetime.time | None = None
    afternoon_start: datetime.time | None = None
    afternoon_end: datetime.time | None = None
    min_age: int
    max_age: int
    bookings_open: bool


class ClubDetailResponse(ClubResponse):
    """A club with its active booking options."""

    booking_options: list[BookingOptionResponse] = []


class CalendarCellResponse(BaseModel):
    date: datetime.date
    state: DayState
    clickable: bool
    morning_status: SessionStatus | None = None
    afternoon_status: SessionStatus | None = None


class CalendarResponse(BaseModel):
    """One month of a club's booking calendar.

    ``cells`` is a Monday-first grid; ``None`` entries are padding before the
    1st and after the last day of the month.
    """

    month: str  # YYYY-MM
    cells: list[CalendarCellResponse | None]
    can_go_back: bool
    can_go_forward: bool
    previous_month: str | None = None
    next_month: str | None = None
    selected_dates: list[datetime.date] = []
