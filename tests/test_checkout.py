"""Tests for the checkout payload and the Stripe gateway (network stubbed with httpx.MockTransport)."""

from __future__ import annotations

import base64
import dataclasses
import datetime
import json
from urllib.parse import parse_qs

import httpx
import pytest

from holiday_club.config import get_settings
from holiday_club.services.checkout import (
    CheckoutGatewayError,
    CheckoutRequest,
    StripeCheckoutGateway,
    booking_description,
    build_checkout_payload,
    extension_description,
    get_checkout_gateway,
)
from holiday_club.services.pricing import price_selection
from holiday_club.services.selection import OptionType, Selection

DATES = frozenset({datetime.date(2025, 4, 9), datetime.date(2025, 4, 8)})


def _request() -> CheckoutRequest:
    selection = Selection(OptionType.MULTI_DAY, DATES, child_count=2)
    price = price_selection(selection, 3500, discount_percent=10)
    return CheckoutRequest(
        payload=build_checkout_payload(selection, booking_option_id=3, price=price, promo_code_id=1),
        booking_id=42,
        product_name="Easter Holiday Club 2025",
        description=booking_description("Multiple Days", selection, per_day=True),
        customer_email="sam@example.com",
        success_url="http://localhost:3000/booking/success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="http://localhost:3000/clubs/easter-2025",
    )


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestPayload:
    def test_payload_matches_selection_and_price(self):
        payload = _request().payload
        assert payload.selected_dates == [datetime.date(2025, 4, 8), datetime.date(2025, 4, 9)]
        assert payload.child_count == 2
        assert payload.total_amount == 12600
        assert payload.promo_code_id == 1

    def test_metadata_is_string_valued(self):
        metadata = _request().payload.as_metadata()
        assert json.loads(metadata["selectedDates"]) == ["2025-04-08", "2025-04-09"]
        assert metadata["totalAmount"] == "12600"
        assert all(isinstance(v, str) for v in metadata.values())

    def test_metadata_without_promo(self):
        selection = Selection(OptionType.SINGLE_DAY, frozenset({datetime.date(2025, 4, 8)}))
        payload = build_checkout_payload(selection, 2, price_selection(selection, 3500))
        assert payload.as_metadata()["promoCodeId"] == ""


class TestDescriptions:
    def test_multi_day(self):
        selection = Selection(OptionType.MULTI_DAY, DATES, child_count=2)
        assert booking_description("Multiple Days", selection, per_day=True) == "Multiple Days - 2 children (2 days)"

    def test_flat_price_option(self):
        selection = Selection(OptionType.SINGLE_DAY, frozenset({datetime.date(2025, 4, 8)}))
        assert booking_description("Single Day", selection, per_day=False) == "Single Day - 1 child"

    def test_extension(self):
        one = Selection(OptionType.MULTI_DAY, frozenset({datetime.date(2025, 4, 8)}), child_count=1)
        assert extension_description(one) == "Additional 1 day - 1 child"
        assert extension_description(Selection(OptionType.MULTI_DAY, DATES, 3)) == "Additional 2 days - 3 children"


class TestStripeCheckoutGateway:
    @pytest.mark.asyncio
    async def test_creates_session(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cs_test_123", "url": "https://checkout.stripe.com/c/cs_test_123"})

        gateway = StripeCheckoutGateway("sk_test_abc", transport=httpx.MockTransport(handler))
        session = await gateway.create_session(_request())

        assert session.id == "cs_test_123"
        assert session.url == "https://checkout.stripe.com/c/cs_test_123"

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.stripe.com/v1/checkout/sessions"
        assert request.headers["authorization"] == "Basic " + base64.b64encode(b"sk_test_abc:").decode()

        form = _form(request)
        assert form["mode"] == "payment"
        assert form["client_reference_id"] == "42"
        assert form["line_items[0][quantity]"] == "1"
        assert form["line_items[0][price_data][currency]"] == "gbp"
        assert form["line_items[0][price_data][unit_amount]"] == "12600"
        assert form["line_items[0][price_data][product_data][description]"] == "Multiple Days - 2 children (2 days)"
        assert form["metadata[bookingId]"] == "42"
        assert form["metadata[childCount]"] == "2"

    @pytest.mark.asyncio
    async def test_provider_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(402, json={"error": {"message": "declined"}}))
        gateway = StripeCheckoutGateway("sk_test_abc", transport=transport)
        with pytest.raises(CheckoutGatewayError, match="402"):
            await gateway.create_session(_request())

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = StripeCheckoutGateway("sk_test_abc", transport=httpx.MockTransport(handler))
        with pytest.raises(CheckoutGatewayError, match="unreachable"):
            await gateway.create_session(_request())

    @pytest.mark.asyncio
    async def test_response_without_url(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "cs_test_123"}))
        gateway = StripeCheckoutGateway("sk_test_abc", transport=transport)
        with pytest.raises(CheckoutGatewayError):
            await gateway.create_session(_request())

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        gateway = StripeCheckoutGateway("sk_test_abc", transport=transport)
        with pytest.raises(CheckoutGatewayError, match="unreadable"):
            await gateway.create_session(_request())

    @pytest.mark.asyncio
    async def test_session_expiry_sent(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cs_1", "url": "https://pay.test/cs_1"})

        expires = datetime.datetime(2025, 4, 1, 12, 30, tzinfo=datetime.timezone.utc)
        gateway = StripeCheckoutGateway("sk", transport=httpx.MockTransport(handler))
        await gateway.create_session(dataclasses.replace(_request(), expires_at=expires))
        assert _form(seen[0])["expires_at"] == str(int(expires.timestamp()))

    @pytest.mark.asyncio
    async def test_no_expiry_by_default(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cs_1", "url": "https://pay.test/cs_1"})

        gateway = StripeCheckoutGateway("sk", transport=httpx.MockTransport(handler))
        await gateway.create_session(_request())
        assert "expires_at" not in _form(seen[0])

    @pytest.mark.asyncio
    async def test_custom_api_base(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cs_1", "url": "https://pay.test/cs_1"})

        gateway = StripeCheckoutGateway(
            "sk", api_base="http://stripe-mock:12111/v1/", transport=httpx.MockTransport(handler)
        )
        await gateway.create_session(_request())
        assert str(seen[0].url) == "http://stripe-mock:12111/v1/checkout/sessions"


class TestPaymentStatus:
    @pytest.mark.asyncio
    async def test_paid_session(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"id": "cs_test_123", "payment_status": "paid", "payment_intent": "pi_456", "url": None},
            )

        gateway = StripeCheckoutGateway("sk_test_abc", transport=httpx.MockTransport(handler))
        status = await gateway.get_payment_status("cs_test_123")

        assert seen[0].method == "GET"
        assert str(seen[0].url) == "https://api.stripe.com/v1/checkout/sessions/cs_test_123"
        assert status.is_paid
        assert status.payment_intent_id == "pi_456"

    @pytest.mark.asyncio
    async def test_unpaid_session(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200, json={"id": "cs_1", "payment_status": "unpaid", "url": "https://pay.test/cs_1"}
            )
        )
        status = await StripeCheckoutGateway("sk", transport=transport).get_payment_status("cs_1")
        assert not status.is_paid
        assert status.url == "https://pay.test/cs_1"

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"error": {}}))
        with pytest.raises(CheckoutGatewayError, match="404"):
            await StripeCheckoutGateway("sk", transport=transport).get_payment_status("cs_missing")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="oops"))
        with pytest.raises(CheckoutGatewayError):
            await StripeCheckoutGateway("sk", transport=transport).get_payment_status("cs_1")


class TestGetCheckoutGateway:
    @pytest.fixture(autouse=True)
    def _fresh_settings(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_disabled_without_key(self, monkeypatch):
        monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
        assert get_checkout_gateway() is None

    def test_enabled_with_key(self, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_abc")
        assert isinstance(get_checkout_gateway(), StripeCheckoutGateway)
