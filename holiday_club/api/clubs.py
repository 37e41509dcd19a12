from __future__ import annotations

import datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from holiday_club.config import get_settings
from holiday_club.db.base import BookingRepository
from holiday_club.db.factory import get_booking_repository
from holiday_club.db.models import BookingOption, Club
from holiday_club.schemas.club import (
    BookingOptionResponse,
    CalendarCellResponse,
    CalendarResponse,
    ClubDetailResponse,
    ClubResponse,
)
from holiday_club.services.availability import day_records_from_orm, effective_days, window_from_orm
from holiday_club.services.club_calendar import MonthView, clamp_month, parse_month, shift_month
from holiday_club.services.extension import BookingPlan
from holiday_club.services.selection import OptionType, Selection, TimeSlot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["clubs"])

# ---------------------------------------------------------------------------
# Helpers shared with the booking endpoints
# ---------------------------------------------------------------------------


async def get_open_club(repo: BookingRepository, club_id: int) -> Club:
    club = await repo.get_club_by_id(club_id)
    if club is None or not club.is_active:
        raise HTTPException(status_code=404, detail="Club not found")
    return club


async def get_club_option(repo: BookingRepository, option_id: int) -> tuple[Club, BookingOption]:
    """Return the option and its club, or 404 if either is missing or inactive."""
    option = await repo.get_booking_option(option_id)
    if option is None or not option.is_active:
        raise HTTPException(status_code=404, detail="Booking option not found")
    club = await get_open_club(repo, option.club_id)
    return club, option


async def load_booking_plan(
    repo: BookingRepository,
    club: Club,
    time_slot: TimeSlot,
    places: int,
    booked_dates: set[datetime.date] | None = None,
) -> BookingPlan:
    """Build a plan from a fresh availability snapshot.

    Days whose sessions cannot take *places* more children for *time_slot* are
    offered as unavailable.  Passing *booked_dates* builds an add-days plan.
    """
    club_days = await repo.get_club_days(club.id)
    counts = await repo.get_session_counts(club.id)
    days = effective_days(day_records_from_orm(club_days, counts), time_slot, places)
    window = window_from_orm(club)
    if booked_dates is None:
        return BookingPlan.for_new_booking(window, days)
    return BookingPlan.for_extension(window, days, booked_dates)


def resolve_month(month: str | None, club: Club) -> datetime.date:
    """Parse ``YYYY-MM`` and clamp it into the club's months; defaults to the start month."""
    window = window_from_orm(club)
    if month is None:
        return clamp_month(window.start_date, window)
    try:
        return clamp_month(parse_month(month), window)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid month, expected YYYY-MM") from exc


def calendar_response(view: MonthView, selected: Selection) -> CalendarResponse:
    return CalendarResponse(
        month=view.month.strftime("%Y-%m"),
        cells=[
            None
            if cell is None
            else CalendarCellResponse(
                date=cell.date,
                state=cell.state,
                clickable=cell.is_clickable,
                morning_status=cell.morning_status,
                afternoon_status=cell.afternoon_status,
            )
            for cell in view.cells
        ],
        can_go_back=view.can_go_back,
        can_go_forward=view.can_go_forward,
        previous_month=shift_month(view.month, -1).strftime("%Y-%m") if view.can_go_back else None,
        next_month=shift_month(view.month, 1).strftime("%Y-%m") if view.can_go_forward else None,
        selected_dates=selected.sorted_dates(),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/api/clubs", response_model=list[ClubResponse])
async def list_clubs(
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> list[ClubResponse]:
    """List active clubs, soonest first."""
    return await repo.list_clubs()


@router.get("/api/clubs/{slug}", response_model=ClubDetailResponse)
async def get_club(
    slug: str,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> ClubDetailResponse:
    """Get a club and its active booking options."""
    club = await repo.get_club_by_slug(slug)
    if club is None or not club.is_active:
        raise HTTPException(status_code=404, detail="Club not found")

    options = await repo.get_booking_options(club.id)
    return ClubDetailResponse(
        **ClubResponse.model_validate(club).model_dump(),
        booking_options=[BookingOptionResponse.model_validate(o) for o in options],
    )


@router.get("/api/clubs/{slug}/calendar", response_model=CalendarResponse)
async def get_club_calendar(
    slug: str,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    option_id: int = Query(..., description="Booking option the calendar is shown for"),
    month: str | None = Query(default=None, description="Month to show, YYYY-MM"),
    selected: list[datetime.date] = Query(default=[], description="Dates selected so far"),
    children: int = Query(default=1, ge=1, description="Number of children being booked"),
) -> CalendarResponse:
    """Get one month of the booking calendar for a club and booking option.

    Full-week options always show every available day as selected.  Selected
    dates that are no longer available are dropped.
    """
    settings = get_settings()
    club = await repo.get_club_by_slug(slug)
    if club is None or not club.is_active:
        raise HTTPException(status_code=404, detail="Club not found")
    option = await repo.get_booking_option(option_id)
    if option is None or not option.is_active or option.club_id != club.id:
        raise HTTPException(status_code=404, detail="Booking option not found")
    if children > settings.MAX_CHILDREN:
        raise HTTPException(status_code=400, detail=f"Number of children must be at most {settings.MAX_CHILDREN}")

    plan = await load_booking_plan(repo, club, TimeSlot(option.time_slot), children)
    selection = plan.restore(Selection(OptionType(option.option_type), frozenset(selected), children))
    view = plan.month_view(resolve_month(month, club), selection.dates, settings.LOW_AVAILABILITY_RATIO)
    return calendar_response(view, selection)
