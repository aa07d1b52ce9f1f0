# src/app/services/recipes.py
from __future__ import annotations

import logging
import random
from typing import Any, Iterable, Optional

from src.app.domain.errors import RecipeNotFoundError
from src.app.domain.models import SavedRecipe
from src.app.infra.db.base import RecipeRepository

logger = logging.getLogger(__name__)

FAVORITES_FOLDER = "Favorites"
SAVED_FOLDER = "Saved Recipes"
UNTITLED_RECIPE = "Untitled Recipe"

COMMUNITY_POOL_SIZE = 50
COMMUNITY_PAGE_SIZE = 10


def recipe_name_of(recipe_data: dict[str, Any]) -> str:
    name = recipe_data.get("recipeName")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return UNTITLED_RECIPE


def list_folders(recipes: Iterable[SavedRecipe]) -> list[str]:
    """Favorites first, then Saved Recipes, then the remaining folders alphabetically."""
    custom = {recipe.folder for recipe in recipes if recipe.folder}
    custom.discard(FAVORITES_FOLDER)
    custom.discard(SAVED_FOLDER)
    return [FAVORITES_FOLDER, SAVED_FOLDER, *sorted(custom)]


class RecipeService:
    def __init__(self, repository: RecipeRepository, rng: Optional[random.Random] = None):
        self._repo = repository
        self._rng = rng or random.Random()

    def list_recipes(self, user_id: str) -> list[SavedRecipe]:
        return self._repo.list_for_user(user_id)

    def get_recipe(self, user_id: str, recipe_id: str) -> SavedRecipe:
        recipe = self._repo.get_for_user(user_id, recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        return recipe

    def save_recipe(
        self,
        user_id: str,
        recipe_data: dict[str, Any],
        folder: str = SAVED_FOLDER,
        skip_duplicates: bool = True,
    ) -> tuple[SavedRecipe, bool]:
        """
        Save a recipe for a user.

        Returns:
            (recipe, created); created is False when a recipe with the same
            name was already in the collection
        """
        name = recipe_name_of(recipe_data)
        if skip_duplicates:
            existing = self._repo.find_by_name(user_id, name)
            if existing is not None:
                return existing, False

        recipe = self._repo.insert(
            user_id,
            name,
            recipe_data,
            folder=folder,
            is_favorite=folder == FAVORITES_FOLDER,
        )
        logger.info("Recipe saved: id=%s, user=%s, name=%s", recipe.id, user_id, name)
        return recipe, True

    def toggle_favorite(self, user_id: str, recipe_id: str) -> SavedRecipe:
        recipe = self.get_recipe(user_id, recipe_id)
        favorite = not recipe.is_favorite
        if favorite:
            folder = FAVORITES_FOLDER
        elif recipe.folder == FAVORITES_FOLDER:
            folder = SAVED_FOLDER
        else:
            folder = recipe.folder
        return self._update(user_id, recipe_id, {"is_favorite": favorite, "folder": folder})

    def move_recipe(self, user_id: str, recipe_id: str, folder: str) -> SavedRecipe:
        destination = folder.strip()
        if not destination:
            raise ValueError("Folder name is required.")

        recipe = self.get_recipe(user_id, recipe_id)
        if destination == recipe.folder:
            return recipe

        favorite = recipe.is_favorite
        if destination == FAVORITES_FOLDER:
            favorite = True
        elif recipe.folder == FAVORITES_FOLDER:
            favorite = False
        return self._update(user_id, recipe_id, {"folder": destination, "is_favorite": favorite})

    def delete_recipe(self, user_id: str, recipe_id: str) -> None:
        if not self._repo.delete(user_id, recipe_id):
            raise RecipeNotFoundError(recipe_id)

    def community_recipes(self, limit: int = COMMUNITY_PAGE_SIZE) -> list[SavedRecipe]:
        """A shuffled selection of recent recipes with distinct names."""
        pool = [
            recipe for recipe in self._repo.list_recent(COMMUNITY_POOL_SIZE)
            if isinstance(recipe.recipe_data, dict) and recipe.recipe_data.get("recipeName")
        ]
        self._rng.shuffle(pool)

        picked: list[SavedRecipe] = []
        seen: set[str] = set()
        for recipe in pool:
            name = recipe.recipe_data["recipeName"]
            if name in seen:
                continue
            seen.add(name)
            picked.append(recipe)
            if len(picked) >= limit:
                break
        return picked

    def community_recipe(self, recipe_id: str) -> SavedRecipe:
        recipe = self._repo.get_by_id(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        return recipe

    def _update(self, user_id: str, recipe_id: str, changes: dict[str, Any]) -> SavedRecipe:
        updated = self._repo.update(user_id, recipe_id, changes)
        if updated is None:
            raise RecipeNotFoundError(recipe_id)
        return updated
