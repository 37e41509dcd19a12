"""Turn persisted club data into the snapshot the booking core works on.

The core never imports SQLAlchemy: ORM rows are flattened into
:class:`ClubWindow` / :class:`DayRecord` values here, and per-session booked
counts are folded in so that a day whose sessions are full for the chosen time
slot stops being selectable.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from holiday_club.services.club_calendar import ClubWindow, DayRecord
from holiday_club.services.selection import TimeSlot

# (morning_booked, afternoon_booked) per date
SessionCounts = Mapping[datetime.date, tuple[int, int]]


def window_from_orm(club: Any) -> ClubWindow:
    return ClubWindow(start_date=club.start_date, end_date=club.end_date)


def day_records_from_orm(club_days: Iterable[Any], session_counts: SessionCounts | None = None) -> list[DayRecord]:
    """Convert ``ClubDay`` rows, attaching booked counts where known."""
    session_counts = session_counts or {}
    records: list[DayRecord] = []
    for day in club_days:
        morning_booked, afternoon_booked = session_counts.get(day.date, (0, 0))
        records.append(
            DayRecord(
                date=day.date,
                morning_capacity=day.morning_capacity,
                afternoon_capacity=day.afternoon_capacity,
                is_available=day.is_available,
                morning_booked=morning_booked,
                afternoon_booked=afternoon_booked,
            )
        )
    return sorted(records, key=lambda r: r.date)


def has_room(record: DayRecord, time_slot: TimeSlot, places: int = 1) -> bool:
    """Whether *places* more children fit into the sessions *time_slot* covers."""
    morning_left = record.morning_capacity - record.morning_booked
    afternoon_left = record.afternoon_capacity - record.afternoon_booked
    if time_slot is TimeSlot.MORNING:
        return morning_left >= places
    if time_slot is TimeSlot.AFTERNOON:
        return afternoon_left >= places
    return morning_left >= places and afternoon_left >= places


def effective_days(days: Iterable[DayRecord], time_slot: TimeSlot, places: int = 1) -> list[DayRecord]:
    """Mark days without room for the option's sessions as unavailable.

    The administrative ``is_available`` switch always wins; capacity can only
    take a day away, never give one back.
    """
    result: list[DayRecord] = []
    for day in days:
        if day.is_available and not has_room(day, time_slot, places):
            day = replace(day, is_available=False)
        result.append(day)
    return result


def slot_counts(time_slot: TimeSlot, children: int) -> tuple[int, int]:
    """Places a booking of *children* takes in the (morning, afternoon) sessions."""
    if time_slot is TimeSlot.MORNING:
        return children, 0
    if time_slot is TimeSlot.AFTERNOON:
        return 0, children
    return children, children
