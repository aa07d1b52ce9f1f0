from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.app.domain.models import SavedRecipe


class RecipeResponse(BaseModel):
    id: str
    recipeName: str
    recipeData: dict[str, Any]
    folder: Optional[str] = None
    isFavorite: bool = False
    createdAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, recipe: SavedRecipe) -> "RecipeResponse":
        return cls(
            id=recipe.id,
            recipeName=recipe.recipe_name,
            recipeData=recipe.recipe_data,
            folder=recipe.folder,
            isFavorite=recipe.is_favorite,
            createdAt=recipe.created_at,
        )


class RecipeCollection(BaseModel):
    recipes: list[RecipeResponse]
    folders: list[str]


class SaveRecipeRequest(BaseModel):
    recipeData: dict[str, Any]
    folder: Optional[str] = Field(default=None, max_length=120)


class SaveRecipeResponse(BaseModel):
    recipe: RecipeResponse
    created: bool


class MoveRecipeRequest(BaseModel):
    folder: str = Field(..., min_length=1, max_length=120)


class CommunityRecipe(BaseModel):
    id: str
    recipeName: str
    recipeData: dict[str, Any]
    createdAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, recipe: SavedRecipe) -> "CommunityRecipe":
        return cls(
            id=recipe.id,
            recipeName=recipe.recipe_name,
            recipeData=recipe.recipe_data,
            createdAt=recipe.created_at,
        )
