from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    DB_BACKEND: str = "sqlite"
    SQLITE_PATH: str = "./data/bookings.db"
    CORS_ORIGINS: str = ""  # Comma-separated origins, empty = same-origin only
    LOG_LEVEL: str = "INFO"

    # Checkout
    SITE_URL: str = "http://localhost:3000"
    STRIPE_SECRET_KEY: str | None = None  # Checkout is disabled when unset
    STRIPE_WEBHOOK_SECRET: str | None = None  # Payment notifications are refused when unset
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    CURRENCY: str = "gbp"
    PENDING_HOLD_MINUTES: int = 30  # Stripe sessions expire after 30 to 1440 minutes
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Booking rules
    MAX_CHILDREN: int = 10
    MIN_MULTI_DAY: int = 2
    LOW_AVAILABILITY_RATIO: float = 0.25  # session shows "low" at or below this share of places left

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
