# src/app/infra/db/base.py
"""
Abstract repositories for profiles, usage metering and saved recipes.
Implementations raise RepositoryError on store failures; callers decide
whether that is fatal.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from src.app.domain.models import (
    AnonymousUsageRecord,
    Profile,
    SavedRecipe,
    SubscriptionUpdate,
    UsageHistoryRecord,
)


class ProfileRepository(ABC):
    """
    Access to the `profiles` table.

    Implementations:
    - SupabaseProfileRepository: hosted Postgres through PostgREST
    """

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Profile]:
        """
        Load a profile by user id.

        Returns:
            The profile, or None if no row exists
        """
        pass

    @abstractmethod
    def update_daily_usage(
        self,
        user_id: str,
        usage_count: int,
        reset_at: Optional[datetime] = None,
    ) -> None:
        """
        Persist the daily usage counter.

        Args:
            user_id: Profile owner
            usage_count: New counter value
            reset_at: New window start; left untouched when None
        """
        pass

    @abstractmethod
    def update_subscription(
        self,
        update: SubscriptionUpdate,
        updated_at: datetime,
    ) -> bool:
        """
        Overwrite the subscription fields of a profile.

        Returns:
            True if a row was updated
        """
        pass


class UsageRepository(ABC):
    """
    Access to `anonymous_usage` and `usage_history`.
    """

    @abstractmethod
    def count_anonymous_usage(self, ip_identifier: str, since: datetime) -> int:
        """Count anonymous attempts for an IP created at or after `since`."""
        pass

    @abstractmethod
    def add_anonymous_usage(self, record: AnonymousUsageRecord) -> None:
        pass

    @abstractmethod
    def add_history(self, record: UsageHistoryRecord) -> Optional[str]:
        """Append an audit record and return its id when the store reports one."""
        pass

    @abstractmethod
    def set_history_recipe_name(self, record_id: str, recipe_name: str) -> None:
        pass


class RecipeRepository(ABC):
    """
    Access to `saved_recipes`.
    """

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[SavedRecipe]:
        """List a user's recipes, newest first."""
        pass

    @abstractmethod
    def get_for_user(self, user_id: str, recipe_id: str) -> Optional[SavedRecipe]:
        pass

    @abstractmethod
    def get_by_id(self, recipe_id: str) -> Optional[SavedRecipe]:
        """Load a recipe regardless of owner (community view)."""
        pass

    @abstractmethod
    def find_by_name(self, user_id: str, recipe_name: str) -> Optional[SavedRecipe]:
        pass

    @abstractmethod
    def insert(
        self,
        user_id: str,
        recipe_name: str,
        recipe_data: dict[str, Any],
        folder: str,
        is_favorite: bool = False,
    ) -> SavedRecipe:
        pass

    @abstractmethod
    def update(
        self,
        user_id: str,
        recipe_id: str,
        changes: dict[str, Any],
    ) -> Optional[SavedRecipe]:
        """Apply changes to an owned recipe; None when no row matched."""
        pass

    @abstractmethod
    def delete(self, user_id: str, recipe_id: str) -> bool:
        pass

    @abstractmethod
    def list_recent(self, limit: int) -> list[SavedRecipe]:
        """Newest recipes across all users."""
        pass
