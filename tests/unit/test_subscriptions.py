from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from src.app.domain.errors import RepositoryError
from src.app.domain.models import Profile, SubscriptionTier, SubscriptionUpdate
from src.app.infra.db.base import ProfileRepository
from src.app.services.subscriptions import SubscriptionReconciler

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
PERIOD_END = datetime(2024, 2, 15, tzinfo=timezone.utc)


class SubscriptionRepositoryStub(ProfileRepository):
    def __init__(self) -> None:
        self.rows: dict[str, dict] = {"user-1": {}}
        self.fail = False

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return None

    def update_daily_usage(self, user_id: str, usage_count: int, reset_at: Optional[datetime] = None) -> None:
        pass

    def update_subscription(self, update: SubscriptionUpdate, updated_at: datetime) -> bool:
        if self.fail:
            raise RepositoryError("update_subscription", "unavailable")
        if update.user_id not in self.rows:
            return False
        self.rows[update.user_id] = {
            "subscription_tier": update.tier.value,
            "subscription_expires_at": update.expires_at,
            "updated_at": updated_at,
        }
        return True


def reconciler(repo: SubscriptionRepositoryStub) -> SubscriptionReconciler:
    return SubscriptionReconciler(repo, clock=lambda: FIXED_NOW)


class TestApply:
    def test_writes_tier_expiry_and_timestamp(self) -> None:
        repo = SubscriptionRepositoryStub()
        update = SubscriptionUpdate(user_id="user-1", tier=SubscriptionTier.PREMIUM, expires_at=PERIOD_END)

        assert reconciler(repo).apply(update, source="stripe:customer.subscription.updated") is True
        assert repo.rows["user-1"] == {
            "subscription_tier": "premium",
            "subscription_expires_at": PERIOD_END,
            "updated_at": FIXED_NOW,
        }

    def test_replay_converges(self) -> None:
        repo = SubscriptionRepositoryStub()
        update = SubscriptionUpdate(user_id="user-1", tier=SubscriptionTier.FREE, expires_at=None)
        service = reconciler(repo)

        service.apply(update)
        first = dict(repo.rows["user-1"])
        service.apply(update)

        assert repo.rows["user-1"] == first

    def test_unknown_user_reports_false(self) -> None:
        repo = SubscriptionRepositoryStub()
        update = SubscriptionUpdate(user_id="ghost", tier=SubscriptionTier.PREMIUM, expires_at=PERIOD_END)

        assert reconciler(repo).apply(update) is False

    def test_store_failure_is_logged_not_raised(self, caplog) -> None:
        repo = SubscriptionRepositoryStub()
        repo.fail = True
        update = SubscriptionUpdate(user_id="user-1", tier=SubscriptionTier.PREMIUM, expires_at=PERIOD_END)

        with caplog.at_level("ERROR"):
            assert reconciler(repo).apply(update, source="paddle:subscription.updated") is False

        assert "may drift" in caplog.text
