from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from holiday_club.api.bookings import router as bookings_router
from holiday_club.api.children import router as children_router
from holiday_club.api.clubs import router as clubs_router
from holiday_club.api.payments import router as payments_router
from holiday_club.api.promo_codes import router as promo_codes_router
from holiday_club.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Ensure the data directory, SQLite database, and tables exist on startup.

    Unpaid bookings past their payment window are released.
    """
    settings = get_settings()
    if settings.DB_BACKEND.lower() == "sqlite":
        from holiday_club.db.sqlite_repo import SQLiteBookingRepository

        Path(settings.SQLITE_PATH).parent.mkdir(parents=True, exist_ok=True)
        repo = SQLiteBookingRepository(settings.SQLITE_PATH, settings.PENDING_HOLD_MINUTES)
        await repo.init_db()
        await repo.expire_pending_bookings()
        await repo.engine.dispose()

    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout endpoints will return 503")
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; payments can only be confirmed via /api/verify-payment")
    yield


_settings = get_settings()
logging.basicConfig(
    level=_settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Holiday Club Bookings API",
    description="Availability, pricing and checkout for holiday club bookings",
    version="0.1.0",
    lifespan=lifespan,
)

_cors_origins = [o.strip() for o in _settings.CORS_ORIGINS.split(",") if o.strip()] if _settings.CORS_ORIGINS else []
if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


app.include_router(clubs_router)
app.include_router(bookings_router)
app.include_router(promo_codes_router)
app.include_router(payments_router)
app.include_router(children_router)


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("holiday_club.main:app", host="0.0.0.0", port=8000, reload=True)
