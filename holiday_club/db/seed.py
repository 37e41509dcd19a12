"""Seed the booking database with demo holiday clubs.

Usage::

    python -m holiday_club.db.seed --db ./data/bookings.db
"""

from __future__ import annotations

import argparse
import datetime
import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from holiday_club.db.models import Base, BookingOption, Club, ClubDay, PromoCode

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("./data/bookings.db")

_MORNING = (datetime.time(8, 30), datetime.time(12, 0))
_AFTERNOON = (datetime.time(12, 0), datetime.time(15, 30))

# (slug, name, description, start, end, capacity, closed dates)
_DEMO_CLUBS = [
    (
        "easter-2025",
        "Easter Holiday Club 2025",
        "Two weeks of outdoor adventures over the Easter break.",
        datetime.date(2025, 4, 7),
        datetime.date(2025, 4, 17),
        20,
        [],
    ),
    (
        "summer-week1-2025",
        "Summer Holiday Club - Week 1",
        "Kick off the summer holidays with a week of outdoor fun.",
        datetime.date(2025, 7, 21),
        datetime.date(2025, 7, 25),
        24,
        [],
    ),
    (
        "august-2025",
        "August Holiday Club 2025",
        "Late-summer club running across the bank holiday.",
        datetime.date(2025, 8, 18),
        datetime.date(2025, 8, 29),
        24,
        [datetime.date(2025, 8, 25)],  # bank holiday
    ),
    (
        "october-half-term-2025",
        "October Half Term Club 2025",
        "Make the most of the autumn break.",
        datetime.date(2025, 10, 27),
        datetime.date(2025, 10, 31),
        20,
        [],
    ),
]

# (name suffix, option_type, time_slot, price in pence)
_OPTION_TEMPLATES = [
    ("Full Week (Full Day)", "full_week", "full_day", 15000),
    ("Full Week (Mornings)", "full_week", "morning", 9000),
    ("Full Week (Afternoons)", "full_week", "afternoon", 9000),
    ("Single Day (Full Day)", "single_day", "full_day", 3500),
    ("Single Day (Morning)", "single_day", "morning", 2000),
    ("Single Day (Afternoon)", "single_day", "afternoon", 2000),
    ("Multiple Days (Full Day)", "multi_day", "full_day", 3500),
    ("Multiple Days (Mornings)", "multi_day", "morning", 2000),
    ("Multiple Days (Afternoons)", "multi_day", "afternoon", 2000),
]


def generate_club_days(
    club: Club,
    capacity: int,
    closed: list[datetime.date] | None = None,
) -> list[ClubDay]:
    """One ``ClubDay`` per weekday in the club's range; *closed* dates are switched off."""
    closed_set = set(closed or [])
    days: list[ClubDay] = []
    day = club.start_date
    while day <= club.end_date:
        if day.weekday() < 5:
            days.append(
                ClubDay(
                    club_id=club.id,
                    date=day,
                    morning_capacity=capacity,
                    afternoon_capacity=capacity,
                    is_available=day not in closed_set,
                )
            )
        day += datetime.timedelta(days=1)
    return days


def generate_booking_options(club: Club) -> list[BookingOption]:
    return [
        BookingOption(
            club_id=club.id,
            name=name,
            option_type=option_type,
            time_slot=time_slot,
            price_per_child=price,
            sort_order=order,
        )
        for order, (name, option_type, time_slot, price) in enumerate(_OPTION_TEMPLATES, start=1)
    ]


def generate_promo_codes(now: datetime.datetime) -> list[PromoCode]:
    return [
        PromoCode(
            code="EARLYBIRD",
            discount_percent=10,
            valid_from=now - datetime.timedelta(days=30),
            valid_until=now + datetime.timedelta(days=365),
        ),
        PromoCode(
            code="SUMMER20",
            discount_percent=20,
            valid_from=now - datetime.timedelta(days=30),
            valid_until=now + datetime.timedelta(days=365),
            max_uses=50,
        ),
    ]


def seed_demo_data(session: Session) -> int:
    """Insert the demo clubs that are not present yet. Returns the number of clubs added."""
    inserted = 0
    for slug, name, description, start, end, capacity, closed in _DEMO_CLUBS:
        if session.query(Club).filter_by(slug=slug).first() is not None:
            logger.debug("Club %r already present - skipping", slug)
            continue

        club = Club(
            slug=slug,
            name=name,
            description=description,
            start_date=start,
            end_date=end,
            morning_start=_MORNING[0],
            morning_end=_MORNING[1],
            afternoon_start=_AFTERNOON[0],
            afternoon_end=_AFTERNOON[1],
        )
        session.add(club)
        session.flush()
        session.add_all(generate_club_days(club, capacity, closed))
        session.add_all(generate_booking_options(club))
        inserted += 1

    if session.query(PromoCode).count() == 0:
        now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        session.add_all(generate_promo_codes(now))

    session.commit()
    return inserted


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m holiday_club.db.seed",
        description="Seed the booking database with demo holiday clubs.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=DEFAULT_DB_PATH,
        help=f"Path to the SQLite database file (default: {DEFAULT_DB_PATH}).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the seed script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)
    db_path: Path = args.db
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        inserted = seed_demo_data(session)
    logger.info("Seeded %d new clubs into %s", inserted, db_path)


if __name__ == "__main__":
    main()
