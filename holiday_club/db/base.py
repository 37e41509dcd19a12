from __future__ import annotations

import datetime
from abc import ABC, abstractmethod

from holiday_club.db.models import Booking, BookingOption, Child, Club, ClubDay, PromoCode

# Bookings in these states count as days the family has paid for.  They hold
# their places for good; a pending booking holds them only until its payment
# window lapses.
CONFIRMED_STATUSES = ("paid", "complete")


class StaleAvailabilityError(Exception):
    """Raised when dates offered to a user are no longer available at submission time."""

    def __init__(self, dates: list[datetime.date]) -> None:
        self.dates = sorted(dates)
        super().__init__("No longer available: " + ", ".join(d.isoformat() for d in self.dates))


class BookingRepository(ABC):
    """Abstract interface for all club and booking data access."""

    # ------------------------------------------------------------------
    # Clubs
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_clubs(self) -> list[Club]:
        """Return active clubs ordered by start date."""
        ...

    @abstractmethod
    async def get_club_by_id(self, club_id: int) -> Club | None:
        """Return a single club by primary key, or ``None`` if not found."""
        ...

    @abstractmethod
    async def get_club_by_slug(self, slug: str) -> Club | None:
        """Return a single club by its URL slug, or ``None`` if not found."""
        ...

    @abstractmethod
    async def get_club_days(self, club_id: int) -> list[ClubDay]:
        """Return all day records for a club, ordered by date."""
        ...

    @abstractmethod
    async def get_session_counts(self, club_id: int) -> dict[datetime.date, tuple[int, int]]:
        """Return ``{date: (morning_places_taken, afternoon_places_taken)}`` from active bookings."""
        ...

    # ------------------------------------------------------------------
    # Booking options
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_booking_options(self, club_id: int) -> list[BookingOption]:
        """Return active booking options for a club ordered by ``sort_order``."""
        ...

    @abstractmethod
    async def get_booking_option(self, option_id: int) -> BookingOption | None:
        """Return a booking option by primary key, or ``None`` if not found."""
        ...

    # ------------------------------------------------------------------
    # Promo codes
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_promo_code_by_code(self, code: str) -> PromoCode | None:
        """Return the promo code with this (normalised) code, or ``None``."""
        ...

    @abstractmethod
    async def get_promo_code(self, promo_code_id: int) -> PromoCode | None:
        """Return a promo code by primary key, or ``None``."""
        ...

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Booking | None:
        """Return a booking with its club, option and days loaded, or ``None``."""
        ...

    @abstractmethod
    async def get_booked_dates(self, booking_id: int) -> set[datetime.date]:
        """Return the dates the family holds under a booking.

        An add-days booking resolves to the booking it extends, so the result
        is always the original booking's dates plus all of its confirmed
        add-days bookings.
        """
        ...

    @abstractmethod
    async def create_booking(self, booking: Booking, dates: list[datetime.date], time_slot: str) -> Booking:
        """Persist *booking* with one ``BookingDay`` per date in a single transaction.

        Availability and remaining capacity are re-checked inside the same
        transaction.

        Raises:
            StaleAvailabilityError: If any date is unavailable or full.
        """
        ...

    @abstractmethod
    async def attach_checkout_session(self, booking_id: int, session_id: str) -> None:
        """Record the payment provider's session id on a booking."""
        ...

    @abstractmethod
    async def set_booking_status(self, booking_id: int, status: str) -> None:
        """Update a booking's status (e.g. cancel a pending booking whose checkout failed)."""
        ...

    # ------------------------------------------------------------------
    # Payment lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def mark_booking_paid(self, booking_id: int, payment_intent_id: str | None) -> bool:
        """Move a pending booking to ``paid`` and count its promo code use.

        Returns ``False`` (and changes nothing) when the booking is missing or
        no longer pending, so repeated payment notifications are harmless.
        """
        ...

    @abstractmethod
    async def cancel_pending_booking(self, booking_id: int) -> bool:
        """Cancel a booking if it is still pending; return whether it was."""
        ...

    @abstractmethod
    async def expire_pending_bookings(self) -> int:
        """Cancel pending bookings whose payment window has lapsed; return how many."""
        ...

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_children(self, booking_id: int) -> list[Child]:
        ...

    @abstractmethod
    async def save_children(self, booking_id: int, children: list[Child]) -> list[Child]:
        """Replace a booking's child records and mark the booking ``complete``."""
        ...
