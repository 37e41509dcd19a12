from __future__ import annotations

import datetime
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import and_, delete, event, or_, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload

from holiday_club.db.base import CONFIRMED_STATUSES, BookingRepository, StaleAvailabilityError
from holiday_club.db.models import (
    Base,
    Booking,
    BookingDay,
    BookingOption,
    Child,
    Club,
    ClubDay,
    PromoCode,
    utcnow,
)
from holiday_club.services.availability import has_room, slot_counts
from holiday_club.services.club_calendar import DayRecord
from holiday_club.services.selection import TimeSlot

logger = logging.getLogger(__name__)


def _enable_immediate_transactions(engine: AsyncEngine) -> None:
    """Have SQLAlchemy emit ``BEGIN`` itself instead of the sqlite3 driver.

    The driver defers ``BEGIN`` until the first write, so the reads of a
    check-then-insert would run outside the write lock.  Connections carrying
    the ``begin_immediate`` execution option start with ``BEGIN IMMEDIATE``.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn) -> None:
        mode = "IMMEDIATE" if conn.get_execution_options().get("begin_immediate") else "DEFERRED"
        conn.exec_driver_sql(f"BEGIN {mode}")


def _holds_places(cutoff: datetime.datetime):
    """Bookings that take up places: confirmed ones, and pending ones still inside their payment window."""
    return or_(
        Booking.status.in_(CONFIRMED_STATUSES),
        and_(Booking.status == "pending", Booking.created_at >= cutoff),
    )


async def _session_counts(
    session: AsyncSession,
    club_id: int,
    cutoff: datetime.datetime,
) -> dict[datetime.date, tuple[int, int]]:
    """Sum places taken per (morning, afternoon) session from bookings that hold places."""
    stmt = (
        select(BookingDay.date, BookingDay.time_slot, Booking.num_children)
        .join(Booking, BookingDay.booking_id == Booking.id)
        .where(Booking.club_id == club_id)
        .where(_holds_places(cutoff))
    )
    result = await session.execute(stmt)

    counts: dict[datetime.date, tuple[int, int]] = {}
    for day, time_slot, children in result.all():
        morning, afternoon = slot_counts(TimeSlot(time_slot), children)
        prev_morning, prev_afternoon = counts.get(day, (0, 0))
        counts[day] = (prev_morning + morning, prev_afternoon + afternoon)
    return counts


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SQLiteBookingRepository(BookingRepository):
    """SQLite-backed implementation of :class:`BookingRepository`.

    Uses *aiosqlite* via SQLAlchemy's async engine.  Every write that depends
    on what it has just read runs in a ``BEGIN IMMEDIATE`` transaction, so a
    second writer waits for the first to commit and then sees its rows.

    Parameters
    ----------
    sqlite_path:
        Path to the database file.
    pending_hold_minutes:
        How long an unpaid booking keeps its places.
    """

    def __init__(self, sqlite_path: str = "./data/bookings.db", pending_hold_minutes: int = 30) -> None:
        url = f"sqlite+aiosqlite:///{sqlite_path}"
        self._engine = create_async_engine(url, echo=False)
        _enable_immediate_transactions(self._engine)
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )
        self._pending_hold = datetime.timedelta(minutes=pending_hold_minutes)

    @property
    def engine(self) -> AsyncEngine:
        """Expose the underlying async engine (used by the application lifespan)."""
        return self._engine

    async def init_db(self) -> None:
        """Create all tables if they do not already exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def _locked_session(self) -> AsyncIterator[AsyncSession]:
        """A session whose transaction holds the database write lock from its first statement."""
        async with self._engine.connect() as conn:
            await conn.execution_options(begin_immediate=True)
            async with self._session_factory(bind=conn) as session:
                async with session.begin():
                    yield session

    def _hold_cutoff(self) -> datetime.datetime:
        return utcnow() - self._pending_hold

    # ------------------------------------------------------------------
    # Clubs
    # ------------------------------------------------------------------

    async def list_clubs(self) -> list[Club]:
        stmt = select(Club).where(Club.is_active.is_(True)).order_by(Club.start_date)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_club_by_id(self, club_id: int) -> Club | None:
        async with self._session_factory() as session:
            return await session.get(Club, club_id)

    async def get_club_by_slug(self, slug: str) -> Club | None:
        stmt = select(Club).where(Club.slug == slug)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_club_days(self, club_id: int) -> list[ClubDay]:
        stmt = select(ClubDay).where(ClubDay.club_id == club_id).order_by(ClubDay.date)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_session_counts(self, club_id: int) -> dict[datetime.date, tuple[int, int]]:
        async with self._session_factory() as session:
            return await _session_counts(session, club_id, self._hold_cutoff())

    # ------------------------------------------------------------------
    # Booking options
    # ------------------------------------------------------------------

    async def get_booking_options(self, club_id: int) -> list[BookingOption]:
        stmt = (
            select(BookingOption)
            .where(BookingOption.club_id == club_id)
            .where(BookingOption.is_active.is_(True))
            .order_by(BookingOption.sort_order, BookingOption.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_booking_option(self, option_id: int) -> BookingOption | None:
        async with self._session_factory() as session:
            return await session.get(BookingOption, option_id)

    # ------------------------------------------------------------------
    # Promo codes
    # ------------------------------------------------------------------

    async def get_promo_code_by_code(self, code: str) -> PromoCode | None:
        stmt = select(PromoCode).where(PromoCode.code == code)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_promo_code(self, promo_code_id: int) -> PromoCode | None:
        async with self._session_factory() as session:
            return await session.get(PromoCode, promo_code_id)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: int) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.club),
                selectinload(Booking.booking_option),
                selectinload(Booking.days),
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_booked_dates(self, booking_id: int) -> set[datetime.date]:
        async with self._session_factory() as session:
            parent_id = await session.scalar(select(Booking.parent_booking_id).where(Booking.id == booking_id))
            root_id = booking_id if parent_id is None else parent_id

            stmt = (
                select(BookingDay.date)
                .join(Booking, BookingDay.booking_id == Booking.id)
                .where(
                    or_(
                        Booking.id == root_id,
                        and_(Booking.parent_booking_id == root_id, Booking.status.in_(CONFIRMED_STATUSES)),
                    )
                )
            )
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def create_booking(self, booking: Booking, dates: list[datetime.date], time_slot: str) -> Booking:
        slot = TimeSlot(time_slot)
        async with self._locked_session() as session:
            await self._expire_pending(session)

            club = await session.get(Club, booking.club_id)
            day_rows = await session.execute(
                select(ClubDay).where(ClubDay.club_id == booking.club_id).where(ClubDay.date.in_(dates))
            )
            club_days = {d.date: d for d in day_rows.scalars().all()}
            counts = await _session_counts(session, booking.club_id, self._hold_cutoff())

            stale: list[datetime.date] = []
            for day in dates:
                row = club_days.get(day)
                if club is None or row is None or not row.is_available:
                    stale.append(day)
                    continue
                if not club.start_date <= day <= club.end_date:
                    stale.append(day)
                    continue
                morning_taken, afternoon_taken = counts.get(day, (0, 0))
                record = DayRecord(
                    date=day,
                    morning_capacity=row.morning_capacity,
                    afternoon_capacity=row.afternoon_capacity,
                    morning_booked=morning_taken,
                    afternoon_booked=afternoon_taken,
                )
                if not has_room(record, slot, booking.num_children):
                    stale.append(day)

            if stale:
                logger.info("Rejecting booking for club %d: stale dates %s", booking.club_id, stale)
                raise StaleAvailabilityError(stale)

            session.add(booking)
            await session.flush()
            session.add_all(BookingDay(booking_id=booking.id, date=day, time_slot=slot.value) for day in dates)

        logger.info(
            "Created %s booking %d for club %d (%d days)", booking.status, booking.id, booking.club_id, len(dates)
        )
        return booking

    async def attach_checkout_session(self, booking_id: int, session_id: str) -> None:
        stmt = update(Booking).where(Booking.id == booking_id).values(stripe_checkout_session_id=session_id)
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def set_booking_status(self, booking_id: int, status: str) -> None:
        stmt = update(Booking).where(Booking.id == booking_id).values(status=status)
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    # ------------------------------------------------------------------
    # Payment lifecycle
    # ------------------------------------------------------------------

    async def mark_booking_paid(self, booking_id: int, payment_intent_id: str | None) -> bool:
        async with self._locked_session() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None or booking.status != "pending":
                return False

            booking.status = "paid"
            booking.stripe_payment_intent_id = payment_intent_id
            if booking.promo_code_id is not None:
                await session.execute(
                    update(PromoCode)
                    .where(PromoCode.id == booking.promo_code_id)
                    .values(times_used=PromoCode.times_used + 1)
                )

        logger.info("Booking %d paid (payment intent %s)", booking_id, payment_intent_id)
        return True

    async def cancel_pending_booking(self, booking_id: int) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == "pending")
            .values(status="cancelled")
        )
        async with self._locked_session() as session:
            result = await session.execute(stmt)
        return result.rowcount > 0

    async def _expire_pending(self, session: AsyncSession) -> int:
        stmt = (
            update(Booking)
            .where(Booking.status == "pending")
            .where(Booking.created_at < self._hold_cutoff())
            .values(status="cancelled")
        )
        result = await session.execute(stmt)
        if result.rowcount:
            logger.info("Released %d unpaid bookings past their payment window", result.rowcount)
        return result.rowcount

    async def expire_pending_bookings(self) -> int:
        async with self._locked_session() as session:
            return await self._expire_pending(session)

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    async def get_children(self, booking_id: int) -> list[Child]:
        stmt = select(Child).where(Child.booking_id == booking_id).order_by(Child.id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def save_children(self, booking_id: int, children: list[Child]) -> list[Child]:
        async with self._locked_session() as session:
            await session.execute(delete(Child).where(Child.booking_id == booking_id))
            for child in children:
                child.booking_id = booking_id
            session.add_all(children)
            await session.execute(update(Booking).where(Booking.id == booking_id).values(status="complete"))

        logger.info("Saved %d children for booking %d; booking complete", len(children), booking_id)
        return children
