from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class UsageResponse(BaseModel):
    isPremium: bool
    dailyLimit: int
    usageCount: int
    # None means unlimited
    usageRemaining: Optional[int] = None


class CheckoutResponse(BaseModel):
    url: str
