"""Tests for webhook signature verification."""

from __future__ import annotations

import json

import pytest

from holiday_club.services.webhooks import WebhookSignatureError, compute_signature, verify_webhook_event

SECRET = "whsec_unit"
NOW = 1_743_500_000
PAYLOAD = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()


def _header(payload: bytes = PAYLOAD, secret: str = SECRET, timestamp: int = NOW) -> str:
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


class TestVerifyWebhookEvent:
    def test_valid_delivery(self):
        event = verify_webhook_event(PAYLOAD, _header(), SECRET, now=NOW)
        assert event == {"id": "evt_1", "type": "checkout.session.completed"}

    def test_any_v1_signature_may_match(self):
        header = f"t={NOW},v1=deadbeef,v1={compute_signature(PAYLOAD, SECRET, NOW)}"
        assert verify_webhook_event(PAYLOAD, header, SECRET, now=NOW)["id"] == "evt_1"

    def test_wrong_secret(self):
        with pytest.raises(WebhookSignatureError, match="No signature matches"):
            verify_webhook_event(PAYLOAD, _header(secret="whsec_other"), SECRET, now=NOW)

    def test_tampered_payload(self):
        tampered = PAYLOAD.replace(b"evt_1", b"evt_2")
        with pytest.raises(WebhookSignatureError):
            verify_webhook_event(tampered, _header(), SECRET, now=NOW)

    def test_stale_timestamp(self):
        with pytest.raises(WebhookSignatureError, match="tolerance"):
            verify_webhook_event(PAYLOAD, _header(), SECRET, now=NOW + 301)

    def test_within_custom_tolerance(self):
        assert verify_webhook_event(PAYLOAD, _header(), SECRET, tolerance=600, now=NOW + 301)

    @pytest.mark.parametrize("header", [f"t={NOW}", "v1=abc", "t=soon,v1=abc", ""])
    def test_malformed_header(self, header: str):
        with pytest.raises(WebhookSignatureError):
            verify_webhook_event(PAYLOAD, header, SECRET, now=NOW)

    @pytest.mark.parametrize("payload", [b"not json", b"[1, 2]"])
    def test_payload_not_an_object(self, payload: bytes):
        with pytest.raises(WebhookSignatureError):
            verify_webhook_event(payload, _header(payload), SECRET, now=NOW)
