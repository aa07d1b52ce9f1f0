from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from src.app.config import Settings
from src.app.deps import CurrentUser, get_checkout_service, get_current_user, get_settings_dep
from src.app.domain.errors import ConfigurationError
from src.app.schemas.account import CheckoutResponse
from src.app.services.checkout_service import CheckoutService
from src.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

CONFIG_ERROR = "Server configuration error."


def _require_email(user: CurrentUser) -> str:
    if not user.email:
        raise HTTPException(status_code=400, detail="An email address is required for checkout.")
    return user.email


@router.post("/stripe", response_model=CheckoutResponse)
def create_stripe_checkout(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    email = _require_email(user)
    origin = request.headers.get("origin") or settings.APP_URL
    try:
        url = service.create_stripe_checkout(user.id, email, origin)
    except ConfigurationError as exc:
        logger.error("Stripe checkout is not configured: %s", exc)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR)
    except PaymentProviderError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return CheckoutResponse(url=url)


@router.post("/paddle", response_model=CheckoutResponse)
def create_paddle_checkout(
    user: CurrentUser = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    email = _require_email(user)
    try:
        url = service.create_paddle_checkout(user.id, email)
    except ConfigurationError as exc:
        logger.error("Paddle checkout is not configured: %s", exc)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR)
    except PaymentProviderError as exc:
        raise HTTPException(status_code=exc.status_code, detail=f"Paddle Error: {exc.message}")
    return CheckoutResponse(url=url)
