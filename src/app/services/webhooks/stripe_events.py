# src/app/services/webhooks/stripe_events.py
"""
Stripe webhook adapter: signature verification and mapping of checkout and
subscription lifecycle events onto SubscriptionUpdate.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

import stripe

from src.app.domain.errors import WebhookPayloadError, WebhookSignatureError
from src.app.domain.models import SubscriptionTier, SubscriptionUpdate
from src.services.dates import from_epoch_seconds

logger = logging.getLogger(__name__)

PROVIDER = "stripe"
ACTIVE_STATUS = "active"

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

SubscriptionFetcher = Callable[[str], dict[str, Any]]


def _object_field(container: dict[str, Any], key: str) -> dict[str, Any]:
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WebhookPayloadError(PROVIDER, f"{key} must be a JSON object")
    return value


def verify_stripe_event(payload: bytes, signature: Optional[str], secret: str) -> dict[str, Any]:
    """
    Verify the Stripe-Signature header over the raw body and return the
    decoded event.

    Raises:
        WebhookSignatureError: Header missing or signature mismatch
        WebhookPayloadError: Body is not valid JSON
    """
    if not signature:
        raise WebhookSignatureError(PROVIDER, "Missing Stripe-Signature header")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as err:
        raise WebhookSignatureError(PROVIDER, str(err)) from err
    except ValueError as err:
        raise WebhookPayloadError(PROVIDER, "Invalid JSON payload") from err

    event = json.loads(payload)
    if not isinstance(event, dict):
        raise WebhookPayloadError(PROVIDER, "Event must be a JSON object")
    return event


def make_subscription_fetcher(api_key: str) -> SubscriptionFetcher:
    def fetch(subscription_id: str) -> dict[str, Any]:
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=api_key)
        return subscription.to_dict()

    return fetch


def period_end(subscription: dict[str, Any]) -> Optional[datetime]:
    """
    Current period end of a subscription. Newer API versions carry it on
    the subscription items instead of the subscription itself.
    """
    value = subscription.get("current_period_end")
    if value is None:
        items = _object_field(subscription, "items").get("data") or []
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise WebhookPayloadError(PROVIDER, "items.data must be a list of JSON objects")
        if items:
            value = items[0].get("current_period_end")
    return from_epoch_seconds(value)


def subscription_to_update(user_id: str, subscription: dict[str, Any]) -> SubscriptionUpdate:
    status = subscription.get("status")
    tier = SubscriptionTier.PREMIUM if status == ACTIVE_STATUS else SubscriptionTier.FREE
    return SubscriptionUpdate(user_id=user_id, tier=tier, expires_at=period_end(subscription))


def stripe_event_to_update(
    event: dict[str, Any],
    fetch_subscription: Optional[SubscriptionFetcher] = None,
) -> Optional[SubscriptionUpdate]:
    """
    Map a verified Stripe event onto a SubscriptionUpdate.

    Returns None for events that carry no subscription change or cannot be
    tied to a user; those are acknowledged without mutation.

    Raises:
        WebhookPayloadError: data, data.object or metadata is not a JSON object
    """
    event_type = event.get("type")
    obj = _object_field(_object_field(event, "data"), "object")
    metadata = _object_field(obj, "metadata")

    if event_type == CHECKOUT_COMPLETED:
        user_id = metadata.get("userId") or obj.get("client_reference_id")
        subscription_id = obj.get("subscription")
        if obj.get("mode") != "subscription" or not subscription_id:
            return None
        if not user_id:
            logger.warning("Checkout session %s has no user reference", obj.get("id"))
            return None
        if fetch_subscription is None:
            raise WebhookPayloadError(PROVIDER, "Cannot resolve checkout subscription without an API key")
        return subscription_to_update(user_id, fetch_subscription(subscription_id))

    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        user_id = metadata.get("userId")
        if not user_id:
            logger.warning("Stripe %s without metadata.userId: subscription=%s", event_type, obj.get("id"))
            return None
        return subscription_to_update(user_id, obj)

    if event_type == SUBSCRIPTION_DELETED:
        user_id = metadata.get("userId")
        if not user_id:
            logger.warning("Stripe %s without metadata.userId: subscription=%s", event_type, obj.get("id"))
            return None
        return SubscriptionUpdate(user_id=user_id, tier=SubscriptionTier.FREE, expires_at=None)

    logger.debug("Ignoring Stripe event type %s", event_type)
    return None
