# src/app/domain/models.py
"""
Domain models for usage metering, subscriptions and saved recipes.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class SubscriptionTier(str, Enum):
    """Subscription level stored on the profile row."""
    FREE = "free"
    PREMIUM = "premium"


@dataclass
class Profile:
    """
    Per-user subscription and daily usage state.

    The tier is advisory: premium only counts while the expiry lies in the
    future, see has_active_premium().
    """
    id: str
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    subscription_expires_at: Optional[datetime] = None
    daily_usage_count: int = 0
    daily_usage_reset_at: Optional[datetime] = None

    def has_active_premium(self, now: datetime) -> bool:
        """Check whether premium entitlement holds at the given instant."""
        if self.subscription_tier != SubscriptionTier.PREMIUM:
            return False
        if self.subscription_expires_at is None:
            return False
        expires_at = self.subscription_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now < expires_at


@dataclass(frozen=True)
class CallerIdentity:
    """Who is asking: an authenticated user or an anonymous client IP."""
    user_id: Optional[str] = None
    ip_address: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


class EntitlementOutcome(str, Enum):
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"
    # Allowed, but metering could not run (store unavailable, no IP, ...)
    DEGRADED = "DEGRADED"


@dataclass
class EntitlementResult:
    """Result of an entitlement evaluation."""
    outcome: EntitlementOutcome
    daily_limit: int
    usage_count: int = 0
    is_premium: bool = False
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome in (EntitlementOutcome.ALLOWED, EntitlementOutcome.DEGRADED)

    @property
    def metered(self) -> bool:
        return self.outcome != EntitlementOutcome.DEGRADED


@dataclass(frozen=True)
class UsageDecision:
    """Outcome of the calendar-day counting rule for a free profile."""
    allowed: bool
    new_count: int
    reset: bool = False


@dataclass
class AnonymousUsageRecord:
    ip_identifier: str
    created_at: datetime


@dataclass
class UsageHistoryRecord:
    prompt_text: str
    is_anonymous: bool
    user_id: Optional[str] = None
    recipe_name: Optional[str] = None
    id: Optional[str] = None


@dataclass
class SavedRecipe:
    """A recipe owned by one user."""
    id: str
    user_id: str
    recipe_name: str
    recipe_data: dict[str, Any] = field(default_factory=dict)
    folder: Optional[str] = None
    is_favorite: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SubscriptionUpdate:
    """Canonical subscription change produced by every payment provider adapter."""
    user_id: str
    tier: SubscriptionTier
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters sent with every generation request."""
    temperature: float = 0.7
    max_output_tokens: int = 2048
    top_p: float = 0.95
    top_k: int = 40
