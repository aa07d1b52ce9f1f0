from __future__ import annotations

import pytest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

from postgrest.exceptions import APIError

from src.app.domain.errors import RepositoryError
from src.app.domain.models import SubscriptionTier, SubscriptionUpdate, UsageHistoryRecord
from src.app.services.entitlement_service import decide_daily_usage
from src.app.infra.db.supabase_repos import (
    SupabaseProfileRepository,
    SupabaseRecipeRepository,
    SupabaseUsageRepository,
    is_missing_table_error,
)

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def client_returning(data=None, count=None) -> MagicMock:
    """Supabase client whose query builder chain ends in execute() -> response."""
    client = MagicMock()
    builder = client.table.return_value
    for method in ("select", "eq", "gte", "order", "limit", "update", "insert", "delete"):
        getattr(builder, method).return_value = builder
    builder.execute.return_value = MagicMock(data=data, count=count)
    return client


def client_raising(error: Exception) -> MagicMock:
    client = client_returning()
    client.table.return_value.execute.side_effect = error
    return client


class TestProfileRepository:
    def test_maps_row(self) -> None:
        client = client_returning(data=[{
            "id": "user-1",
            "subscription_tier": "premium",
            "subscription_expires_at": "2024-02-15T00:00:00+00:00",
            "daily_usage_count": 3,
            "daily_usage_reset_at": "2024-01-15T08:00:00Z",
        }])

        profile = SupabaseProfileRepository(client).get_profile("user-1")

        assert profile.subscription_tier == SubscriptionTier.PREMIUM
        assert profile.subscription_expires_at == datetime(2024, 2, 15, tzinfo=timezone.utc)
        assert profile.daily_usage_count == 3

    def test_trimmed_microseconds_keep_daily_window(self) -> None:
        client = client_returning(data=[{
            "id": "user-1",
            "subscription_tier": "free",
            "subscription_expires_at": None,
            "daily_usage_count": 5,
            "daily_usage_reset_at": "2024-01-15T08:00:00.12345+00:00",
        }])

        profile = SupabaseProfileRepository(client).get_profile("user-1")
        decision = decide_daily_usage(profile, date(2024, 1, 15), 5)

        assert profile.daily_usage_reset_at == datetime(2024, 1, 15, 8, 0, 0, 123450, tzinfo=timezone.utc)
        assert decision.allowed is False
        assert decision.reset is False

    def test_trimmed_microseconds_on_premium_expiry(self) -> None:
        client = client_returning(data=[{
            "id": "user-1",
            "subscription_tier": "premium",
            "subscription_expires_at": "2024-02-15T00:00:00.5+00:00",
        }])

        profile = SupabaseProfileRepository(client).get_profile("user-1")

        assert profile.has_active_premium(NOW) is True

    def test_unknown_tier_is_free(self) -> None:
        client = client_returning(data=[{"id": "user-1", "subscription_tier": "gold"}])

        assert SupabaseProfileRepository(client).get_profile("user-1").subscription_tier == SubscriptionTier.FREE

    def test_missing_row(self) -> None:
        assert SupabaseProfileRepository(client_returning(data=[])).get_profile("user-1") is None

    def test_store_error_is_wrapped(self) -> None:
        client = client_raising(APIError({"message": "boom", "code": "XX000"}))

        with pytest.raises(RepositoryError):
            SupabaseProfileRepository(client).get_profile("user-1")

    def test_update_subscription_writes_iso_timestamps(self) -> None:
        client = client_returning(data=[{"id": "user-1"}])
        update = SubscriptionUpdate(user_id="user-1", tier=SubscriptionTier.FREE, expires_at=None)

        assert SupabaseProfileRepository(client).update_subscription(update, updated_at=NOW) is True
        client.table.return_value.update.assert_called_once_with({
            "subscription_tier": "free",
            "subscription_expires_at": None,
            "updated_at": NOW.isoformat(),
        })

    def test_update_subscription_no_match(self) -> None:
        update = SubscriptionUpdate(user_id="ghost", tier=SubscriptionTier.FREE)

        assert SupabaseProfileRepository(client_returning(data=[])).update_subscription(update, NOW) is False


class TestUsageRepository:
    def test_count(self) -> None:
        client = client_returning(data=[], count=2)

        assert SupabaseUsageRepository(client).count_anonymous_usage("203.0.113.9", NOW) == 2

    def test_missing_table_is_logged_and_raised(self, caplog) -> None:
        error = APIError({"message": "relation does not exist", "code": "42P01"})
        client = client_raising(error)

        with caplog.at_level("ERROR"), pytest.raises(RepositoryError):
            SupabaseUsageRepository(client).count_anonymous_usage("203.0.113.9", NOW)

        assert is_missing_table_error(error)
        assert "anonymous_usage" in caplog.text

    def test_add_history_returns_id(self) -> None:
        client = client_returning(data=[{"id": 17}])

        record_id = SupabaseUsageRepository(client).add_history(UsageHistoryRecord(prompt_text="soup", is_anonymous=True))

        assert record_id == "17"


class TestRecipeRepository:
    def test_update_without_match_returns_none(self) -> None:
        assert SupabaseRecipeRepository(client_returning(data=[])).update("user-1", "r1", {"folder": "X"}) is None

    def test_insert_without_row_raises(self) -> None:
        with pytest.raises(RepositoryError):
            SupabaseRecipeRepository(client_returning(data=[])).insert("user-1", "Dal", {}, folder="Saved Recipes")

    def test_list_recent_maps_rows(self) -> None:
        client = client_returning(data=[{"id": "r1", "user_id": "u", "recipe_name": "Dal", "recipe_data": {"recipeName": "Dal"}}])

        recipes = SupabaseRecipeRepository(client).list_recent(50)

        assert recipes[0].recipe_name == "Dal"
        client.table.return_value.limit.assert_called_once_with(50)
