# src/app/services/checkout_service.py
"""
Checkout creation for the premium plan with Stripe or Paddle.
The user id travels in provider metadata so webhooks can find the profile.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
import stripe

from src.app.config import Settings
from src.app.domain.errors import ConfigurationError
from src.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

PADDLE_TIMEOUT_SECONDS = 15.0


def _secret(value) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


class CheckoutService:
    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self._settings = settings
        self._http = http_client

    def create_stripe_checkout(self, user_id: str, email: str, origin: str) -> str:
        """
        Create a Stripe Checkout Session in subscription mode.

        Returns:
            Checkout URL to redirect the user to
        """
        api_key = _secret(self._settings.STRIPE_SECRET_KEY)
        price_id = self._settings.STRIPE_PREMIUM_PRICE_ID
        if not api_key or not price_id:
            raise ConfigurationError("STRIPE_SECRET_KEY/STRIPE_PREMIUM_PRICE_ID")

        base_url = origin.rstrip("/")
        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                payment_method_types=["card"],
                customer_email=email,
                client_reference_id=user_id,
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=f"{base_url}/pricing?success=true",
                cancel_url=f"{base_url}/pricing?canceled=true",
                metadata={"userId": user_id},
                subscription_data={"metadata": {"userId": user_id}},
            )
        except stripe.StripeError as err:
            logger.error("Stripe checkout error: user=%s, error=%s", user_id, err)
            raise PaymentProviderError(
                "Stripe",
                err.http_status or 500,
                err.user_message or "Failed to create checkout session",
            ) from err

        logger.info("Stripe checkout session created: user=%s, session=%s", user_id, session.id)
        return session.url

    def create_paddle_checkout(self, user_id: str, email: str) -> str:
        """
        Create a Paddle transaction for the premium price.

        Returns:
            Checkout URL from the transaction
        """
        api_key = _secret(self._settings.PADDLE_API_KEY)
        price_id = self._settings.PADDLE_PREMIUM_PRICE_ID
        if not api_key or not price_id:
            raise ConfigurationError("PADDLE_API_KEY/PADDLE_PREMIUM_PRICE_ID")

        app_url = self._settings.APP_URL.rstrip("/")
        transaction = {
            "items": [{"price_id": price_id, "quantity": 1}],
            "customer": {"email": email},
            "custom_data": {"user_id": user_id},
            "checkout": {
                "settings": {
                    "success_url": f"{app_url}/pricing?paddle_success=true&user_id={user_id}",
                    "cancel_url": f"{app_url}/pricing?paddle_canceled=true",
                },
            },
            "collection_mode": "automatic",
        }

        url = f"{self._settings.PADDLE_API_BASE_URL.rstrip('/')}/transactions"
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            if self._http is not None:
                response = self._http.post(url, json=transaction, headers=headers)
            else:
                with httpx.Client(timeout=PADDLE_TIMEOUT_SECONDS) as client:
                    response = client.post(url, json=transaction, headers=headers)
        except httpx.HTTPError as error:
            logger.error("Paddle request failed: user=%s, error=%s", user_id, error)
            raise PaymentProviderError("Paddle", 502, "Failed to reach Paddle") from error

        body = self._json_body(response)
        checkout_url = ((body.get("data") or {}).get("checkout") or {}).get("url")
        if response.is_error or not checkout_url:
            error = body.get("error") or {}
            message = error.get("detail") or error.get("type") or "Failed to create Paddle checkout session."
            logger.error("Paddle API error: status=%d, body=%s", response.status_code, body)
            status_code = response.status_code if response.is_error else 500
            raise PaymentProviderError("Paddle", status_code, message)

        logger.info("Paddle checkout created: user=%s", user_id)
        return checkout_url

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
