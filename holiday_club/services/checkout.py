"""Hand-off from a confirmed selection to the payment provider.

:class:`CheckoutPayload` is what the booking core emits on submission.  The
:class:`CheckoutGateway` turns it into a hosted payment page; the production
implementation talks to Stripe's REST API with *httpx*.
"""

from __future__ import annotations

import datetime
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from holiday_club.config import get_settings
from holiday_club.services.pricing import PriceBreakdown
from holiday_club.services.selection import Selection

logger = logging.getLogger(__name__)

_HTTP_TIMEOUT = 15.0


class CheckoutGatewayError(Exception):
    """Raised when the payment provider cannot create a checkout session."""


@dataclass(frozen=True)
class CheckoutPayload:
    """Everything the payment side needs to know about a submitted selection."""

    selected_dates: list[datetime.date]
    booking_option_id: int
    child_count: int
    total_amount: int
    promo_code_id: int | None = None

    def as_metadata(self) -> dict[str, str]:
        return {
            "selectedDates": json.dumps([d.isoformat() for d in self.selected_dates]),
            "bookingOptionId": str(self.booking_option_id),
            "childCount": str(self.child_count),
            "totalAmount": str(self.total_amount),
            "promoCodeId": "" if self.promo_code_id is None else str(self.promo_code_id),
        }


@dataclass(frozen=True)
class CheckoutRequest:
    """A payload plus the presentation details the hosted page shows."""

    payload: CheckoutPayload
    booking_id: int
    product_name: str
    description: str
    customer_email: str
    success_url: str
    cancel_url: str
    currency: str = "gbp"
    extra_metadata: dict[str, str] = field(default_factory=dict)
    expires_at: datetime.datetime | None = None  # timezone-aware


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class PaymentStatus:
    """What the payment provider currently knows about a session."""

    session_id: str
    payment_status: str  # "paid", "unpaid" or "no_payment_required"
    payment_intent_id: str | None = None
    url: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


def build_checkout_payload(
    selection: Selection,
    booking_option_id: int,
    price: PriceBreakdown,
    promo_code_id: int | None = None,
) -> CheckoutPayload:
    return CheckoutPayload(
        selected_dates=selection.sorted_dates(),
        booking_option_id=booking_option_id,
        child_count=selection.child_count,
        total_amount=price.total,
        promo_code_id=promo_code_id,
    )


def children_label(count: int) -> str:
    return f"{count} {'child' if count == 1 else 'children'}"


def booking_description(option_name: str, selection: Selection, per_day: bool) -> str:
    """Line-item text, e.g. ``"Multiple Days (Full Day) - 2 children (3 days)"``."""
    description = f"{option_name} - {children_label(selection.child_count)}"
    if per_day and selection.count > 0:
        description += f" ({selection.count} days)"
    return description


def extension_description(selection: Selection) -> str:
    plural = "" if selection.count == 1 else "s"
    return f"Additional {selection.count} day{plural} - {children_label(selection.child_count)}"


class CheckoutGateway(ABC):
    """Creates hosted payment sessions."""

    @abstractmethod
    async def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a payment session for *request* and return its id and URL."""
        ...

    @abstractmethod
    async def get_payment_status(self, session_id: str) -> PaymentStatus:
        """Look up whether the session has been paid."""
        ...


class StripeCheckoutGateway(CheckoutGateway):
    """Stripe Checkout via the form-encoded ``/v1/checkout/sessions`` endpoint.

    Parameters
    ----------
    secret_key:
        Stripe secret API key.
    api_base:
        Base URL of the Stripe API.
    transport:
        Optional *httpx* transport, used by tests to stub the network.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._api_base = api_base.rstrip("/")
        self._transport = transport

    @staticmethod
    def _form(request: CheckoutRequest) -> dict[str, str]:
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "customer_email": request.customer_email,
            "client_reference_id": str(request.booking_id),
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": request.currency,
            "line_items[0][price_data][unit_amount]": str(request.payload.total_amount),
            "line_items[0][price_data][product_data][name]": request.product_name,
            "line_items[0][price_data][product_data][description]": request.description,
        }
        if request.expires_at is not None:
            form["expires_at"] = str(int(request.expires_at.timestamp()))
        metadata = {"bookingId": str(request.booking_id), **request.payload.as_metadata(), **request.extra_metadata}
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        return form

    async def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        url = f"{self._api_base}/checkout/sessions"
        try:
            async with httpx.AsyncClient(timeout=_HTTP_TIMEOUT, transport=self._transport) as client:
                response = await client.post(url, data=self._form(request), auth=(self._secret_key, ""))
        except httpx.HTTPError as exc:
            logger.warning("Stripe unreachable creating session for booking %d: %s", request.booking_id, exc)
            raise CheckoutGatewayError("Payment provider unreachable") from exc

        if response.status_code != 200:
            logger.warning(
                "Stripe returned %s for booking %d: %s",
                response.status_code,
                request.booking_id,
                response.text[:200],
            )
            raise CheckoutGatewayError(f"Payment provider returned {response.status_code}")

        data = self._json(response)
        session_id = data.get("id")
        session_url = data.get("url")
        if not session_id or not session_url:
            raise CheckoutGatewayError("Payment provider response missing session id or url")

        logger.info("Created Stripe session %s for booking %d", session_id, request.booking_id)
        return CheckoutSession(id=session_id, url=session_url)

    async def get_payment_status(self, session_id: str) -> PaymentStatus:
        url = f"{self._api_base}/checkout/sessions/{session_id}"
        try:
            async with httpx.AsyncClient(timeout=_HTTP_TIMEOUT, transport=self._transport) as client:
                response = await client.get(url, auth=(self._secret_key, ""))
        except httpx.HTTPError as exc:
            logger.warning("Stripe unreachable fetching session %s: %s", session_id, exc)
            raise CheckoutGatewayError("Payment provider unreachable") from exc

        if response.status_code != 200:
            logger.warning("Stripe returned %s for session %s", response.status_code, session_id)
            raise CheckoutGatewayError(f"Payment provider returned {response.status_code}")

        data = self._json(response)
        payment_status = data.get("payment_status")
        if not payment_status:
            raise CheckoutGatewayError("Payment provider response missing payment status")
        return PaymentStatus(
            session_id=session_id,
            payment_status=payment_status,
            payment_intent_id=data.get("payment_intent"),
            url=data.get("url"),
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Stripe returned a non-JSON body: %s", response.text[:200])
            raise CheckoutGatewayError("Payment provider returned an unreadable response") from exc
        if not isinstance(data, dict):
            raise CheckoutGatewayError("Payment provider returned an unreadable response")
        return data


def get_checkout_gateway() -> CheckoutGateway | None:
    """Return the configured gateway, or ``None`` when no Stripe key is set."""
    settings = get_settings()
    if not settings.STRIPE_SECRET_KEY:
        return None
    return StripeCheckoutGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_API_BASE)
