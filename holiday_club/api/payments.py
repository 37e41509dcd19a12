"""Payment confirmation endpoints.

Stripe reports finished and abandoned checkouts through the webhook; the
verify endpoint asks Stripe directly, for setups where the webhook cannot
reach the service (e.g. local development).
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from holiday_club.api.bookings import require_gateway
from holiday_club.config import get_settings
from holiday_club.db.base import CONFIRMED_STATUSES, BookingRepository
from holiday_club.db.factory import get_booking_repository
from holiday_club.schemas.booking import VerifyPaymentRequest, VerifyPaymentResponse
from holiday_club.services.checkout import CheckoutGateway, CheckoutGatewayError, get_checkout_gateway
from holiday_club.services.webhooks import WebhookSignatureError, verify_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


def get_webhook_secret() -> str | None:
    return get_settings().STRIPE_WEBHOOK_SECRET


def _booking_id(session: dict[str, Any]) -> int:
    """The booking a checkout session pays for, from its metadata or client reference."""
    metadata = session.get("metadata") or {}
    raw = metadata.get("bookingId") or session.get("client_reference_id")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Missing booking id in session metadata") from exc


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


async def _session_completed(repo: BookingRepository, session: dict[str, Any]) -> None:
    booking_id = _booking_id(session)
    if session.get("payment_status") != "paid":
        logger.info("Session %s for booking %d completed without payment yet", session.get("id"), booking_id)
        return

    if await repo.mark_booking_paid(booking_id, session.get("payment_intent")):
        return

    booking = await repo.get_booking(booking_id)
    if booking is None:
        logger.error("Payment received for unknown booking %d", booking_id)
    elif booking.status not in CONFIRMED_STATUSES:
        logger.error("Payment received for %s booking %d; refund required", booking.status, booking_id)
    else:
        logger.info("Booking %d already confirmed", booking_id)


async def _session_expired(repo: BookingRepository, session: dict[str, Any]) -> None:
    booking_id = _booking_id(session)
    if await repo.cancel_pending_booking(booking_id):
        logger.info("Checkout expired; released places held by booking %d", booking_id)


@router.post("/api/stripe/webhook")
async def stripe_webhook(
    request: Request,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    secret: Annotated[str | None, Depends(get_webhook_secret)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict[str, bool]:
    """Apply a signed Stripe event to the booking it concerns."""
    if not secret:
        raise HTTPException(status_code=503, detail="Webhook secret is not configured")
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="No signature provided")

    payload = await request.body()
    try:
        event = verify_webhook_event(
            payload, stripe_signature, secret, tolerance=get_settings().WEBHOOK_TOLERANCE_SECONDS
        )
    except WebhookSignatureError as exc:
        logger.warning("Rejected webhook delivery: %s", exc)
        raise HTTPException(status_code=400, detail="Webhook signature verification failed") from exc

    event_type = event.get("type")
    session = (event.get("data") or {}).get("object") or {}
    logger.info("Received webhook event %s (%s)", event_type, event.get("id"))

    if event_type == "checkout.session.completed":
        await _session_completed(repo, session)
    elif event_type == "checkout.session.expired":
        await _session_expired(repo, session)
    else:
        logger.info("Ignoring webhook event type %s", event_type)
    return {"received": True}


# ---------------------------------------------------------------------------
# Manual verification
# ---------------------------------------------------------------------------


@router.post("/api/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    gateway: Annotated[CheckoutGateway | None, Depends(get_checkout_gateway)],
) -> VerifyPaymentResponse:
    """Ask the payment provider whether a booking's checkout has been paid."""
    gateway = require_gateway(gateway)
    booking = await repo.get_booking(body.booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.status in CONFIRMED_STATUSES:
        return VerifyPaymentResponse(status="already_paid", message="Booking is already marked as paid")
    if not booking.stripe_checkout_session_id:
        raise HTTPException(status_code=400, detail="No payment session found for this booking")

    try:
        payment = await gateway.get_payment_status(booking.stripe_checkout_session_id)
    except CheckoutGatewayError as exc:
        logger.error("Could not check payment for booking %d: %s", booking.id, exc)
        raise HTTPException(status_code=502, detail="Could not check payment status") from exc

    if not payment.is_paid:
        return VerifyPaymentResponse(
            status="unpaid",
            message=f"Payment status: {payment.payment_status}. Complete payment in checkout first.",
            checkout_url=payment.url,
        )

    if not await repo.mark_booking_paid(booking.id, payment.payment_intent_id):
        current = await repo.get_booking(booking.id)
        if current is not None and current.status in CONFIRMED_STATUSES:
            return VerifyPaymentResponse(status="already_paid", message="Booking is already marked as paid")
        logger.error("Booking %d was paid after it was cancelled; refund required", booking.id)
        raise HTTPException(status_code=409, detail="This booking was cancelled before payment arrived")
    return VerifyPaymentResponse(status="verified", message="Payment verified and booking marked as paid")
