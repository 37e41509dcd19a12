"""Promo code validation.

Looks up nothing itself: the caller fetches the ``PromoCode`` row and this module
decides whether it may be applied to a given club right now.  The pricing core
only ever sees the resulting ``discount_percent``.
"""

from __future__ import annotations

import datetime
from typing import Any


class PromoCodeError(Exception):
    """Raised when a promo code cannot be applied; the message is user-facing."""


def normalise_code(code: str) -> str:
    """Promo codes are stored upper-case without surrounding whitespace."""
    return code.strip().upper()


def validate_promo_code(promo: Any | None, club_id: int, now: datetime.datetime | None = None) -> Any:
    """Return *promo* if it can be used for *club_id* at *now*.

    Raises:
        PromoCodeError: If the code is unknown, inactive, outside its validity
            window, used up, or restricted to another club.
    """
    if promo is None:
        raise PromoCodeError("Invalid promo code")
    if not promo.is_active:
        raise PromoCodeError("This promo code is no longer active")

    now = now or datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    if now < promo.valid_from or now > promo.valid_until:
        raise PromoCodeError("This promo code has expired")

    if promo.max_uses is not None and promo.times_used >= promo.max_uses:
        raise PromoCodeError("This promo code has reached its usage limit")

    if promo.club_id is not None and promo.club_id != club_id:
        raise PromoCodeError("This promo code is not valid for this club")

    return promo
