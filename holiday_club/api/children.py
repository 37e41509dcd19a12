"""Endpoints for a paid booking's follow-up: child details and the booked-days calendar file."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response

from holiday_club.api.bookings import load_confirmed_booking
from holiday_club.db.base import BookingRepository
from holiday_club.db.factory import get_booking_repository
from holiday_club.db.models import Child
from holiday_club.schemas.booking import ChildrenRequest, ChildrenResponse, ChildResponse
from holiday_club.services.checkout import children_label
from holiday_club.services.ics import booking_reference, build_booking_calendar, session_times
from holiday_club.services.selection import TimeSlot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["children"])


# ---------------------------------------------------------------------------
# Child details
# ---------------------------------------------------------------------------


@router.get("/api/bookings/{booking_id}/children", response_model=ChildrenResponse)
async def list_children(
    booking_id: int,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> ChildrenResponse:
    booking = await repo.get_booking(booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    children = await repo.get_children(booking_id)
    return ChildrenResponse(
        booking_id=booking.id,
        status=booking.status,
        children=[ChildResponse.model_validate(c) for c in children],
    )


@router.post("/api/bookings/{booking_id}/children", response_model=ChildrenResponse)
async def save_children(
    booking_id: int,
    body: ChildrenRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> ChildrenResponse:
    """Record each child's details and consents, completing the booking.

    Saving again replaces the earlier details.
    """
    booking = await load_confirmed_booking(repo, booking_id, "Child details can only be added")
    if booking.parent_booking_id is not None:
        raise HTTPException(status_code=400, detail="Child details belong to the original booking")
    if len(body.children) != booking.num_children:
        raise HTTPException(
            status_code=400,
            detail=f"Details are needed for exactly {children_label(booking.num_children)}",
        )
    for number, child in enumerate(body.children, start=1):
        if not (child.activity_consent and child.medical_consent):
            raise HTTPException(status_code=400, detail=f"Required consents not given for child {number}")

    saved = await repo.save_children(
        booking.id,
        [
            Child(
                name=child.child_name,
                date_of_birth=child.date_of_birth,
                allergies=child.allergies,
                medical_notes=child.medical_notes,
                emergency_contact_name=child.emergency_contact_name,
                emergency_contact_phone=child.emergency_contact_phone,
                photo_consent=child.photo_consent,
                activity_consent=child.activity_consent,
                medical_consent=child.medical_consent,
            )
            for child in body.children
        ],
    )
    return ChildrenResponse(
        booking_id=booking.id,
        status="complete",
        children=[ChildResponse.model_validate(c) for c in saved],
    )


# ---------------------------------------------------------------------------
# Calendar file
# ---------------------------------------------------------------------------


@router.get("/api/bookings/{booking_id}/calendar.ics")
async def booking_calendar(
    booking_id: int,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> Response:
    """Download every booked day, add-days included, as an iCalendar file."""
    booking = await load_confirmed_booking(repo, booking_id, "A calendar is only available")
    if booking.parent_booking_id is not None:
        booking = await load_confirmed_booking(repo, booking.parent_booking_id, "A calendar is only available")

    dates = sorted(await repo.get_booked_dates(booking.id))
    if not dates:
        raise HTTPException(status_code=404, detail="No booked days found for this booking")

    club = booking.club
    time_slot = TimeSlot(booking.booking_option.time_slot)
    try:
        start, end = session_times(
            time_slot,
            (club.morning_start, club.morning_end),
            (club.afternoon_start, club.afternoon_end),
        )
    except ValueError as exc:
        logger.error("Cannot export calendar for booking %d: %s", booking.id, exc)
        raise HTTPException(status_code=409, detail="Session times are not set for this club") from exc

    content = build_booking_calendar(booking.id, club.name, dates, time_slot, start, end)
    filename = f"{club.slug}-{booking_reference(booking.id)}.ics"
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
