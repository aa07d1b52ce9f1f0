from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from src.app.config import Settings
from src.app.deps import get_reconciler, get_settings_dep
from src.app.domain.errors import WebhookPayloadError, WebhookSignatureError
from src.app.services.subscriptions import SubscriptionReconciler
from src.app.services.webhooks.paddle_events import paddle_event_to_update, verify_paddle_event
from src.app.services.webhooks.stripe_events import (
    make_subscription_fetcher,
    stripe_event_to_update,
    verify_stripe_event,
)
from src.services.dates import now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

RECEIVED = {"received": True}


def _rejected(exc: Exception) -> JSONResponse:
    logger.warning("Webhook rejected: %s", exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> JSONResponse:
    if settings.STRIPE_WEBHOOK_SECRET is None:
        logger.error("Stripe webhook secret is not configured.")
        return JSONResponse(status_code=500, content={"error": "Server configuration error for webhooks."})

    # Signature covers the exact bytes, read before any parsing
    raw_body = await request.body()
    try:
        event = verify_stripe_event(
            raw_body,
            request.headers.get("stripe-signature"),
            settings.STRIPE_WEBHOOK_SECRET.get_secret_value(),
        )
    except (WebhookSignatureError, WebhookPayloadError) as exc:
        return _rejected(exc)

    api_key = settings.STRIPE_SECRET_KEY
    fetcher = make_subscription_fetcher(api_key.get_secret_value()) if api_key else None
    event_type = event.get("type")
    logger.info("Received Stripe webhook: %s", event_type)

    try:
        update = await run_in_threadpool(stripe_event_to_update, event, fetcher)
    except WebhookPayloadError as exc:
        return _rejected(exc)
    except Exception:
        logger.exception("Error processing Stripe webhook %s", event_type)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error while processing webhook."})

    if update is not None:
        await run_in_threadpool(reconciler.apply, update, f"stripe:{event_type}")
    return JSONResponse(status_code=200, content=RECEIVED)


@router.post("/paddle")
async def paddle_webhook(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> JSONResponse:
    if settings.PADDLE_WEBHOOK_SECRET is None:
        logger.error("Paddle webhook secret is not configured.")
        return JSONResponse(status_code=500, content={"error": "Server configuration error for webhooks."})

    raw_body = await request.body()
    try:
        event = verify_paddle_event(
            raw_body,
            request.headers.get("paddle-signature"),
            settings.PADDLE_WEBHOOK_SECRET.get_secret_value(),
        )
        update = paddle_event_to_update(event, now=now_utc())
    except (WebhookSignatureError, WebhookPayloadError) as exc:
        return _rejected(exc)

    event_type = event.get("event_type")
    logger.info("Received Paddle webhook: %s", event_type)

    if update is not None:
        await run_in_threadpool(reconciler.apply, update, f"paddle:{event_type}")
    return JSONResponse(status_code=200, content=RECEIVED)
