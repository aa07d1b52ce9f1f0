# src/app/services/webhooks/paddle_events.py
"""
Paddle webhook adapter.

Paddle signs `{ts}:{raw_body}` with HMAC-SHA256 and sends
`Paddle-Signature: ts=<unix>;h1=<hex>`. During secret rotation the header
may carry more than one h1 value.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime
from typing import Any, Optional

from src.app.domain.errors import WebhookPayloadError, WebhookSignatureError
from src.app.domain.models import SubscriptionTier, SubscriptionUpdate
from src.services.dates import parse_datetime

logger = logging.getLogger(__name__)

PROVIDER = "paddle"

SUBSCRIPTION_ACTIVATED = "subscription.activated"
SUBSCRIPTION_UPDATED = "subscription.updated"
SUBSCRIPTION_CANCELED = "subscription.canceled"

ACTIVE_STATUSES = {"active", "trialing"}
# Status Paddle reports when a subscription ends right away
IMMEDIATE_CANCEL_STATUS = "canceled"


def parse_signature_header(header: Optional[str]) -> tuple[str, list[str]]:
    if not header:
        raise WebhookSignatureError(PROVIDER, "Missing Paddle-Signature header")

    timestamp: Optional[str] = None
    hashes: list[str] = []
    for part in header.split(";"):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "ts":
            timestamp = value
        elif key == "h1":
            hashes.append(value)

    if not timestamp or not hashes:
        raise WebhookSignatureError(PROVIDER, "Malformed Paddle-Signature header")
    return timestamp, hashes


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    signed_payload = timestamp.encode() + b":" + raw_body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def verify_paddle_event(raw_body: bytes, header: Optional[str], secret: str) -> dict[str, Any]:
    """
    Verify the signature over the exact raw body and return the decoded event.

    Raises:
        WebhookSignatureError: Header missing, malformed or not matching
        WebhookPayloadError: Body is not a JSON object
    """
    timestamp, hashes = parse_signature_header(header)
    expected = compute_signature(secret, timestamp, raw_body)
    if not any(hmac.compare_digest(expected, candidate) for candidate in hashes):
        raise WebhookSignatureError(PROVIDER)

    try:
        event = json.loads(raw_body)
    except ValueError as err:
        raise WebhookPayloadError(PROVIDER, "Invalid JSON payload") from err
    if not isinstance(event, dict):
        raise WebhookPayloadError(PROVIDER, "Event must be a JSON object")
    return event


def _object_field(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WebhookPayloadError(PROVIDER, f"{key} must be a JSON object")
    return value


def _paid_through(data: dict[str, Any]) -> Optional[datetime]:
    period = _object_field(data, "current_billing_period")
    return parse_datetime(period.get("ends_at")) or parse_datetime(data.get("next_billed_at"))


def _require_user_id(event_type: str, data: dict[str, Any]) -> str:
    user_id = _object_field(data, "custom_data").get("user_id")
    if not user_id:
        logger.error("Paddle %s without custom_data.user_id: subscription=%s", event_type, data.get("id"))
        raise WebhookPayloadError(PROVIDER, "User ID missing in custom_data.")
    return str(user_id)


def paddle_event_to_update(event: dict[str, Any], now: datetime) -> Optional[SubscriptionUpdate]:
    """
    Map a verified Paddle event onto a SubscriptionUpdate.

    Cancellation is graceful by default: premium stays until the paid-through
    date unless Paddle reports the subscription as already canceled, in
    which case it expires at the cancellation time (`now` if Paddle sent none).

    Raises:
        WebhookPayloadError: Subscription event without a user id, or a
            nested field that should be an object is not one
    """
    event_type = event.get("event_type")
    data = _object_field(event, "data")

    if event_type in (SUBSCRIPTION_ACTIVATED, SUBSCRIPTION_UPDATED):
        user_id = _require_user_id(event_type, data)
        if data.get("status") in ACTIVE_STATUSES:
            return SubscriptionUpdate(user_id=user_id, tier=SubscriptionTier.PREMIUM, expires_at=_paid_through(data))
        return SubscriptionUpdate(user_id=user_id, tier=SubscriptionTier.FREE, expires_at=None)

    if event_type == SUBSCRIPTION_CANCELED:
        user_id = _require_user_id(event_type, data)
        if data.get("status") == IMMEDIATE_CANCEL_STATUS:
            canceled_at = parse_datetime(data.get("canceled_at")) or parse_datetime(event.get("occurred_at")) or now
            return SubscriptionUpdate(user_id=user_id, tier=SubscriptionTier.FREE, expires_at=canceled_at)
        return SubscriptionUpdate(user_id=user_id, tier=SubscriptionTier.PREMIUM, expires_at=_paid_through(data))

    logger.debug("Ignoring Paddle event type %s", event_type)
    return None
