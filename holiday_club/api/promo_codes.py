from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from holiday_club.db.base import BookingRepository
from holiday_club.db.factory import get_booking_repository
from holiday_club.db.models import PromoCode
from holiday_club.schemas.booking import PromoValidateRequest, PromoValidateResponse
from holiday_club.services.promo import PromoCodeError, normalise_code, validate_promo_code

logger = logging.getLogger(__name__)

router = APIRouter(tags=["promo-codes"])


async def resolve_promo_code(repo: BookingRepository, code: str | None, club_id: int) -> PromoCode | None:
    """Look up and validate *code* for *club_id*; ``None`` when no code was given.

    Raises:
        HTTPException: 400 with the user-facing reason when the code cannot be used.
    """
    if code is None or not code.strip():
        return None
    normalised = normalise_code(code)
    try:
        return validate_promo_code(await repo.get_promo_code_by_code(normalised), club_id)
    except PromoCodeError as exc:
        logger.info("Rejected promo code %r for club %d: %s", normalised, club_id, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/api/promo-code/validate", response_model=PromoValidateResponse)
async def validate_promo(
    body: PromoValidateRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> PromoValidateResponse:
    """Check that a promo code can be applied to a club and return its discount."""
    if not body.code.strip():
        raise HTTPException(status_code=400, detail="Promo code is required")

    promo = await resolve_promo_code(repo, body.code, body.club_id)
    return PromoValidateResponse(
        id=promo.id,
        code=promo.code,
        discount_percent=promo.discount_percent,
        club_id=promo.club_id,
    )
