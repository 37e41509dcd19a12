"""Verification of Stripe webhook deliveries.

Stripe signs each delivery with the endpoint's secret.  The
``Stripe-Signature`` header carries a timestamp ``t`` and one or more ``v1``
signatures: hex HMAC-SHA256 of ``"{t}.{payload}"``.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any


class WebhookSignatureError(Exception):
    """Raised when a webhook delivery cannot be authenticated or parsed."""


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise WebhookSignatureError("Malformed signature timestamp") from exc
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Signature header has no timestamp or v1 signature")
    return timestamp, signatures


def verify_webhook_event(
    payload: bytes,
    header: str,
    secret: str,
    tolerance: int = 300,
    now: float | None = None,
) -> dict[str, Any]:
    """Authenticate a delivery and return the decoded event.

    Raises:
        WebhookSignatureError: If the header is malformed, no signature
            matches, the timestamp is more than *tolerance* seconds away from
            *now*, or the payload is not a JSON object.
    """
    timestamp, signatures = _parse_header(header)

    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise WebhookSignatureError("No signature matches the payload")

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        raise WebhookSignatureError("Timestamp outside the tolerance window")

    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise WebhookSignatureError("Payload is not valid JSON") from exc
    if not isinstance(event, dict):
        raise WebhookSignatureError("Payload is not a JSON object")
    return event
