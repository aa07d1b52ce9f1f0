# src/app/services/entitlement_service.py
"""
Entitlement service.
Decides whether a caller may run a metered generation and keeps the
daily counters up to date.

Metering is best-effort: any store failure degrades to "allow, do not
meter" instead of failing the request.

The authenticated path is a plain read-modify-write on
`profiles.daily_usage_count` with no lock or conditional update, so
concurrent requests from one user can over-allow by at most the number
of requests in flight.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from src.app.domain.errors import RepositoryError
from src.app.domain.models import (
    AnonymousUsageRecord,
    CallerIdentity,
    EntitlementOutcome,
    EntitlementResult,
    Profile,
    UsageDecision,
)
from src.app.infra.db.base import ProfileRepository, UsageRepository
from src.services.dates import as_utc, now_utc

logger = logging.getLogger(__name__)

DEFAULT_FREE_TRIES = 5
DEFAULT_ANONYMOUS_FREE_TRIES = 3


def start_of_day(now: datetime) -> datetime:
    return datetime.combine(as_utc(now).date(), time.min, tzinfo=timezone.utc)


def decide_daily_usage(profile: Profile, today: date, daily_limit: int) -> UsageDecision:
    """
    Apply the calendar-day counting rule to a free profile.

    A new calendar day resets the window and counts this call as its first
    use. Within the same day the call is allowed while the counter is
    below the limit.
    """
    reset_at = profile.daily_usage_reset_at
    if reset_at is None or as_utc(reset_at).date() != today:
        return UsageDecision(allowed=True, new_count=1, reset=True)

    if profile.daily_usage_count >= daily_limit:
        return UsageDecision(allowed=False, new_count=profile.daily_usage_count)

    return UsageDecision(allowed=True, new_count=profile.daily_usage_count + 1)


def user_limit_message(daily_limit: int) -> str:
    return (
        f"You have reached your daily limit of {daily_limit} free generations. "
        "Upgrade to premium for unlimited access."
    )


def anonymous_limit_message(daily_limit: int) -> str:
    return (
        f"You have reached the daily limit of {daily_limit} free generations for guests. "
        "Sign up for a free account to keep going."
    )


class EntitlementService:
    """
    Evaluates entitlement for authenticated users and anonymous IPs.

    Responsibilities:
    - Premium bypass
    - Calendar-day reset and counting for free profiles
    - Per-IP daily counting for anonymous callers
    - Usage summary for the account page
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        usage: UsageRepository,
        free_tries: int = DEFAULT_FREE_TRIES,
        anonymous_free_tries: int = DEFAULT_ANONYMOUS_FREE_TRIES,
    ):
        self._profiles = profiles
        self._usage = usage
        self.free_tries = free_tries
        self.anonymous_free_tries = anonymous_free_tries

    def evaluate(self, identity: CallerIdentity, now: Optional[datetime] = None) -> EntitlementResult:
        """
        Decide allow/deny for one generation request and update counters.

        Args:
            identity: Authenticated user or anonymous IP
            now: Current instant (for testing)

        Returns:
            EntitlementResult; DEGRADED means allowed without metering
        """
        current = as_utc(now) if now else now_utc()
        if identity.is_anonymous:
            return self._evaluate_anonymous(identity.ip_address, current)
        return self._evaluate_user(identity.user_id, current)

    def _evaluate_user(self, user_id: str, now: datetime) -> EntitlementResult:
        try:
            profile = self._profiles.get_profile(user_id)
        except RepositoryError as error:
            logger.warning("Profile load failed, allowing unmetered: user=%s, error=%s", user_id, error)
            return self._degraded(self.free_tries, "Profile unavailable")

        if profile is None:
            logger.warning("No profile row for user=%s, allowing unmetered", user_id)
            return self._degraded(self.free_tries, "Profile missing")

        if profile.has_active_premium(now):
            return EntitlementResult(
                outcome=EntitlementOutcome.ALLOWED,
                daily_limit=self.free_tries,
                usage_count=profile.daily_usage_count,
                is_premium=True,
            )

        decision = decide_daily_usage(profile, now.date(), self.free_tries)
        if not decision.allowed:
            logger.info("Daily limit reached: user=%s, count=%d", user_id, profile.daily_usage_count)
            return EntitlementResult(
                outcome=EntitlementOutcome.DENIED,
                daily_limit=self.free_tries,
                usage_count=profile.daily_usage_count,
                reason=user_limit_message(self.free_tries),
            )

        try:
            self._profiles.update_daily_usage(
                user_id,
                decision.new_count,
                reset_at=now if decision.reset else None,
            )
        except RepositoryError as error:
            logger.warning("Usage update failed, allowing unmetered: user=%s, error=%s", user_id, error)
            return self._degraded(self.free_tries, "Usage update failed")

        return EntitlementResult(
            outcome=EntitlementOutcome.ALLOWED,
            daily_limit=self.free_tries,
            usage_count=decision.new_count,
        )

    def _evaluate_anonymous(self, ip_address: Optional[str], now: datetime) -> EntitlementResult:
        limit = self.anonymous_free_tries
        if not ip_address:
            logger.debug("No client IP, skipping anonymous metering")
            return self._degraded(limit, "Client IP unknown")

        try:
            used = self._usage.count_anonymous_usage(ip_address, start_of_day(now))
        except RepositoryError as error:
            logger.warning("Anonymous usage count failed, allowing unmetered: ip=%s, error=%s", ip_address, error)
            return self._degraded(limit, "Anonymous usage unavailable")

        if used >= limit:
            logger.info("Anonymous daily limit reached: ip=%s, count=%d", ip_address, used)
            return EntitlementResult(
                outcome=EntitlementOutcome.DENIED,
                daily_limit=limit,
                usage_count=used,
                reason=anonymous_limit_message(limit),
            )

        try:
            self._usage.add_anonymous_usage(AnonymousUsageRecord(ip_identifier=ip_address, created_at=now))
        except RepositoryError as error:
            logger.warning("Anonymous usage insert failed: ip=%s, error=%s", ip_address, error)

        return EntitlementResult(
            outcome=EntitlementOutcome.ALLOWED,
            daily_limit=limit,
            usage_count=used + 1,
        )

    def usage_summary(self, user_id: str, now: Optional[datetime] = None) -> EntitlementResult:
        """
        Report today's usage without mutating anything.

        Raises:
            RepositoryError: If the profile cannot be loaded
        """
        current = as_utc(now) if now else now_utc()
        profile = self._profiles.get_profile(user_id)
        if profile is None:
            return EntitlementResult(outcome=EntitlementOutcome.ALLOWED, daily_limit=self.free_tries)

        if profile.has_active_premium(current):
            return EntitlementResult(
                outcome=EntitlementOutcome.ALLOWED,
                daily_limit=self.free_tries,
                usage_count=profile.daily_usage_count,
                is_premium=True,
            )

        reset_at = profile.daily_usage_reset_at
        used = profile.daily_usage_count if reset_at and as_utc(reset_at).date() == current.date() else 0
        outcome = EntitlementOutcome.ALLOWED if used < self.free_tries else EntitlementOutcome.DENIED
        return EntitlementResult(outcome=outcome, daily_limit=self.free_tries, usage_count=used)

    @staticmethod
    def _degraded(daily_limit: int, reason: str) -> EntitlementResult:
        return EntitlementResult(
            outcome=EntitlementOutcome.DEGRADED,
            daily_limit=daily_limit,
            reason=reason,
        )
