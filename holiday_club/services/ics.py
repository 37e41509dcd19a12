"""iCalendar export of a family's booked club days."""

from __future__ import annotations

import datetime

from icalendar import Calendar, Event

from holiday_club.services.selection import TimeSlot

_PRODID = "-//Holiday Club Bookings//Booked Days//EN"
_UID_DOMAIN = "holiday-club-bookings"

_SLOT_LABELS = {
    TimeSlot.FULL_DAY: "Full Day",
    TimeSlot.MORNING: "Morning Session",
    TimeSlot.AFTERNOON: "Afternoon Session",
}


def booking_reference(booking_id: int) -> str:
    return f"HC{booking_id:06d}"


def session_times(
    time_slot: TimeSlot,
    morning: tuple[datetime.time | None, datetime.time | None],
    afternoon: tuple[datetime.time | None, datetime.time | None],
) -> tuple[datetime.time, datetime.time]:
    """Start and end of the sessions a booking covers.

    A full day runs from the first session's start to the last session's end,
    so a club without one of its sessions still gets a sensible span.

    Raises:
        ValueError: If the club has no times for the booked session.
    """
    if time_slot is TimeSlot.MORNING:
        start, end = morning
    elif time_slot is TimeSlot.AFTERNOON:
        start, end = afternoon
    else:
        start = morning[0] or afternoon[0]
        end = afternoon[1] or morning[1]

    if start is None or end is None:
        raise ValueError(f"Club has no times set for a {time_slot.value} booking")
    return start, end


def _format_time(value: datetime.time) -> str:
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d}{'am' if value.hour < 12 else 'pm'}"


def build_booking_calendar(
    booking_id: int,
    club_name: str,
    dates: list[datetime.date],
    time_slot: TimeSlot,
    start: datetime.time,
    end: datetime.time,
    stamp: datetime.datetime | None = None,
) -> bytes:
    """One event per booked day, in the club's local (floating) time."""
    if stamp is None:
        stamp = datetime.datetime.now(datetime.timezone.utc)
    label = _SLOT_LABELS[time_slot]
    reference = booking_reference(booking_id)

    calendar = Calendar()
    calendar.add("prodid", _PRODID)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")

    for day in sorted(dates):
        event = Event()
        event.add("uid", f"{booking_id}-{day:%Y%m%d}@{_UID_DOMAIN}")
        event.add("dtstamp", stamp)
        event.add("dtstart", datetime.datetime.combine(day, start))
        event.add("dtend", datetime.datetime.combine(day, end))
        event.add("summary", f"{club_name} - {label}")
        event.add(
            "description",
            "\n".join(
                [
                    club_name,
                    f"{label}: {_format_time(start)} - {_format_time(end)}",
                    "",
                    f"Booking reference: {reference}",
                ]
            ),
        )
        event.add("status", "CONFIRMED")
        event.add("transp", "OPAQUE")
        event.add("categories", ["Holiday Club"])
        calendar.add_component(event)

    return calendar.to_ical()
