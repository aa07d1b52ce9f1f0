from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from src.app.deps import get_current_user, get_entitlement_service, CurrentUser
from src.app.domain.errors import RepositoryError
from src.app.schemas.account import UsageResponse
from src.app.services.entitlement_service import EntitlementService

router = APIRouter(prefix="/auth", tags=["auth"])

@router.get("/me", response_model=CurrentUser)
def me(user: CurrentUser = Depends(get_current_user)):
    return user


@router.get("/usage", response_model=UsageResponse)
def usage(
    user: CurrentUser = Depends(get_current_user),
    entitlements: EntitlementService = Depends(get_entitlement_service),
) -> UsageResponse:
    try:
        summary = entitlements.usage_summary(user.id)
    except RepositoryError as exc:
        raise HTTPException(status_code=503, detail="Usage is temporarily unavailable.") from exc

    remaining = None if summary.is_premium else max(0, summary.daily_limit - summary.usage_count)
    return UsageResponse(
        isPremium=summary.is_premium,
        dailyLimit=summary.daily_limit,
        usageCount=summary.usage_count,
        usageRemaining=remaining,
    )
