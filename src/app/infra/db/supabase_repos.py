from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.app.domain.errors import RepositoryError
from src.app.domain.models import (
    AnonymousUsageRecord,
    Profile,
    SavedRecipe,
    SubscriptionTier,
    SubscriptionUpdate,
    UsageHistoryRecord,
)
from src.app.infra.db.base import ProfileRepository, RecipeRepository, UsageRepository
from src.services.dates import parse_datetime

logger = logging.getLogger(__name__)

# Postgres "undefined_table" and PostgREST "table not in schema cache"
MISSING_TABLE_CODES = {"42P01", "PGRST205"}

_STORE_ERRORS = (APIError, httpx.HTTPError, ConnectionError, TimeoutError)


def create_supabase_client(url: str, service_role_key: str) -> Client:
    if not url or not service_role_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, service_role_key)


def is_missing_table_error(error: BaseException) -> bool:
    return isinstance(error, APIError) and getattr(error, "code", None) in MISSING_TABLE_CODES


def _describe(error: BaseException) -> str:
    if isinstance(error, APIError):
        return f"{error.code}: {error.message}"
    return str(error) or error.__class__.__name__


def _row_to_profile(row: dict[str, Any]) -> Profile:
    tier_value = str(row.get("subscription_tier") or SubscriptionTier.FREE.value)
    try:
        tier = SubscriptionTier(tier_value)
    except ValueError:
        logger.warning("Unknown subscription tier %r on profile %s", tier_value, row.get("id"))
        tier = SubscriptionTier.FREE

    return Profile(
        id=str(row["id"]),
        subscription_tier=tier,
        subscription_expires_at=parse_datetime(row.get("subscription_expires_at")),
        daily_usage_count=int(row.get("daily_usage_count") or 0),
        daily_usage_reset_at=parse_datetime(row.get("daily_usage_reset_at")),
    )


def _row_to_recipe(row: dict[str, Any]) -> SavedRecipe:
    return SavedRecipe(
        id=str(row["id"]),
        user_id=str(row.get("user_id") or ""),
        recipe_name=str(row.get("recipe_name") or ""),
        recipe_data=row.get("recipe_data") or {},
        folder=row.get("folder"),
        is_favorite=bool(row.get("is_favorite")),
        created_at=parse_datetime(row.get("created_at")),
    )


class SupabaseProfileRepository(ProfileRepository):
    TABLE_NAME = "profiles"

    def __init__(self, client: Client):
        self._client = client

    def get_profile(self, user_id: str) -> Profile | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("id, subscription_tier, subscription_expires_at, daily_usage_count, daily_usage_reset_at")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("get_profile", _describe(error)) from error

        return _row_to_profile(result.data[0]) if result.data else None

    def update_daily_usage(
        self,
        user_id: str,
        usage_count: int,
        reset_at: datetime | None = None,
    ) -> None:
        update_data: dict[str, Any] = {"daily_usage_count": usage_count}
        if reset_at is not None:
            update_data["daily_usage_reset_at"] = reset_at.isoformat()

        try:
            self._client.table(self.TABLE_NAME).update(update_data).eq("id", user_id).execute()
        except _STORE_ERRORS as error:
            raise RepositoryError("update_daily_usage", _describe(error)) from error

    def update_subscription(self, update: SubscriptionUpdate, updated_at: datetime) -> bool:
        update_data = {
            "subscription_tier": update.tier.value,
            "subscription_expires_at": update.expires_at.isoformat() if update.expires_at else None,
            "updated_at": updated_at.isoformat(),
        }

        try:
            result = self._client.table(self.TABLE_NAME).update(update_data).eq("id", update.user_id).execute()
        except _STORE_ERRORS as error:
            raise RepositoryError("update_subscription", _describe(error)) from error

        return bool(result.data)


class SupabaseUsageRepository(UsageRepository):
    ANONYMOUS_TABLE = "anonymous_usage"
    HISTORY_TABLE = "usage_history"

    def __init__(self, client: Client):
        self._client = client

    def count_anonymous_usage(self, ip_identifier: str, since: datetime) -> int:
        try:
            result = (
                self._client.table(self.ANONYMOUS_TABLE)
                .select("id", count="exact")
                .eq("ip_identifier", ip_identifier)
                .gte("created_at", since.isoformat())
                .execute()
            )
        except _STORE_ERRORS as error:
            if is_missing_table_error(error):
                logger.error("Table %s does not exist; anonymous metering is disabled", self.ANONYMOUS_TABLE)
            raise RepositoryError("count_anonymous_usage", _describe(error)) from error

        return int(getattr(result, "count", 0) or 0)

    def add_anonymous_usage(self, record: AnonymousUsageRecord) -> None:
        try:
            self._client.table(self.ANONYMOUS_TABLE).insert({
                "ip_identifier": record.ip_identifier,
                "created_at": record.created_at.isoformat(),
            }).execute()
        except _STORE_ERRORS as error:
            raise RepositoryError("add_anonymous_usage", _describe(error)) from error

    def add_history(self, record: UsageHistoryRecord) -> str | None:
        try:
            result = self._client.table(self.HISTORY_TABLE).insert({
                "user_id": record.user_id,
                "prompt_text": record.prompt_text,
                "is_anonymous": record.is_anonymous,
                "recipe_name": record.recipe_name,
            }).execute()
        except _STORE_ERRORS as error:
            raise RepositoryError("add_history", _describe(error)) from error

        if result.data and result.data[0].get("id") is not None:
            return str(result.data[0]["id"])
        return None

    def set_history_recipe_name(self, record_id: str, recipe_name: str) -> None:
        try:
            (
                self._client.table(self.HISTORY_TABLE)
                .update({"recipe_name": recipe_name})
                .eq("id", record_id)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("set_history_recipe_name", _describe(error)) from error


class SupabaseRecipeRepository(RecipeRepository):
    TABLE_NAME = "saved_recipes"

    def __init__(self, client: Client):
        self._client = client

    def list_for_user(self, user_id: str) -> list[SavedRecipe]:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("list_recipes", _describe(error)) from error

        return [_row_to_recipe(row) for row in (result.data or [])]

    def get_for_user(self, user_id: str, recipe_id: str) -> SavedRecipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("id", recipe_id)
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("get_recipe", _describe(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def get_by_id(self, recipe_id: str) -> SavedRecipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("id, user_id, recipe_name, recipe_data, created_at")
                .eq("id", recipe_id)
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("get_recipe_by_id", _describe(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def find_by_name(self, user_id: str, recipe_name: str) -> SavedRecipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("user_id", user_id)
                .eq("recipe_name", recipe_name)
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("find_recipe_by_name", _describe(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def insert(
        self,
        user_id: str,
        recipe_name: str,
        recipe_data: dict[str, Any],
        folder: str,
        is_favorite: bool = False,
    ) -> SavedRecipe:
        try:
            result = self._client.table(self.TABLE_NAME).insert({
                "user_id": user_id,
                "recipe_name": recipe_name,
                "recipe_data": recipe_data,
                "folder": folder,
                "is_favorite": is_favorite,
            }).execute()
        except _STORE_ERRORS as error:
            raise RepositoryError("insert_recipe", _describe(error)) from error

        if not result.data:
            raise RepositoryError("insert_recipe", "no row returned")
        return _row_to_recipe(result.data[0])

    def update(self, user_id: str, recipe_id: str, changes: dict[str, Any]) -> SavedRecipe | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .update(changes)
                .eq("id", recipe_id)
                .eq("user_id", user_id)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("update_recipe", _describe(error)) from error

        return _row_to_recipe(result.data[0]) if result.data else None

    def delete(self, user_id: str, recipe_id: str) -> bool:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .delete()
                .eq("id", recipe_id)
                .eq("user_id", user_id)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("delete_recipe", _describe(error)) from error

        return bool(result.data)

    def list_recent(self, limit: int) -> list[SavedRecipe]:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("id, user_id, recipe_name, recipe_data, created_at")
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except _STORE_ERRORS as error:
            raise RepositoryError("list_recent_recipes", _describe(error)) from error

        return [_row_to_recipe(row) for row in (result.data or [])]
