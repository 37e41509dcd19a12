from __future__ import annotations

from holiday_club.config import get_settings
from holiday_club.db.base import BookingRepository
from holiday_club.db.sqlite_repo import SQLiteBookingRepository


def get_booking_repository() -> BookingRepository:
    """Return the appropriate :class:`BookingRepository` implementation.

    The backend is selected by the ``DB_BACKEND`` setting:

    * ``"sqlite"`` (default) -- uses :class:`SQLiteBookingRepository`
    * ``"postgres"``         -- reserved for a future PostgreSQL backend with row-level capacity locks

    Raises:
        NotImplementedError: If the requested backend is not yet implemented.
    """
    settings = get_settings()
    backend = settings.DB_BACKEND.lower()

    if backend == "sqlite":
        return SQLiteBookingRepository(settings.SQLITE_PATH, settings.PENDING_HOLD_MINUTES)

    if backend == "postgres":
        raise NotImplementedError(
            "PostgreSQL backend is not yet implemented. "
            "Set DB_BACKEND=sqlite or omit the variable to use the default SQLite backend."
        )

    raise ValueError(f"Unknown DB_BACKEND: {backend!r}. Supported values: 'sqlite', 'postgres'.")
