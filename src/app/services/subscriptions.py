# src/app/services/subscriptions.py
"""
Subscription reconciliation.
Every payment provider adapter produces a SubscriptionUpdate; this service
is the only place that writes subscription fields on a profile.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from src.app.domain.errors import RepositoryError
from src.app.domain.models import SubscriptionUpdate
from src.app.infra.db.base import ProfileRepository
from src.services.dates import now_utc

logger = logging.getLogger(__name__)


class SubscriptionReconciler:
    """
    Applies canonical subscription updates to profiles.

    Writes are full overwrites of tier and expiry, so redelivered events
    converge on the same profile state. There is no concurrency token:
    the last writer wins against concurrent webhooks.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._profiles = profiles
        self._clock = clock

    def apply(self, update: SubscriptionUpdate, source: str = "unknown") -> bool:
        """
        Write an update to the profile store.

        Store failures are logged and reported as False instead of raised;
        the webhook still acknowledges the event.

        Args:
            update: Canonical subscription change
            source: Event name, for logging

        Returns:
            True if a profile row was updated
        """
        try:
            updated = self._profiles.update_subscription(update, updated_at=self._clock())
        except RepositoryError as error:
            logger.error(
                "Subscription update failed, provider and profile may drift: source=%s, user=%s, error=%s",
                source, update.user_id, error,
            )
            return False

        if not updated:
            logger.warning("Subscription update matched no profile: source=%s, user=%s", source, update.user_id)
            return False

        logger.info(
            "Subscription updated: source=%s, user=%s, tier=%s, expires_at=%s",
            source, update.user_id, update.tier.value, update.expires_at,
        )
        return True
