# src/app/routers/recipes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.app.deps import CurrentUser, get_current_user, get_recipe_service
from src.app.domain.errors import RecipeNotFoundError, RepositoryError
from src.app.schemas.recipes import (
    CommunityRecipe,
    MoveRecipeRequest,
    RecipeCollection,
    RecipeResponse,
    SaveRecipeRequest,
    SaveRecipeResponse,
)
from src.app.services.recipes import SAVED_FOLDER, RecipeService, list_folders

router = APIRouter(prefix="/recipes", tags=["recipes"])
community_router = APIRouter(prefix="/community-recipes", tags=["community"])


@router.get("/", response_model=RecipeCollection)
def list_recipes(
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeCollection:
    try:
        recipes = service.list_recipes(user.id)
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Could not load your saved recipes.") from exc
    return RecipeCollection(
        recipes=[RecipeResponse.from_domain(recipe) for recipe in recipes],
        folders=list_folders(recipes),
    )


@router.post("/", response_model=SaveRecipeResponse, status_code=status.HTTP_201_CREATED)
def save_recipe(
    payload: SaveRecipeRequest,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> SaveRecipeResponse:
    if not payload.recipeData:
        raise HTTPException(status_code=400, detail="Recipe data is missing.")
    try:
        recipe, created = service.save_recipe(user.id, payload.recipeData, folder=payload.folder or SAVED_FOLDER)
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to save recipe.") from exc
    return SaveRecipeResponse(recipe=RecipeResponse.from_domain(recipe), created=created)


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    try:
        return RecipeResponse.from_domain(service.get_recipe(user.id, recipe_id))
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{recipe_id}/favorite", response_model=RecipeResponse)
def toggle_favorite(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    try:
        return RecipeResponse.from_domain(service.toggle_favorite(user.id, recipe_id))
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Could not update favorite status.") from exc


@router.post("/{recipe_id}/move", response_model=RecipeResponse)
def move_recipe(
    recipe_id: str,
    payload: MoveRecipeRequest,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> RecipeResponse:
    try:
        return RecipeResponse.from_domain(service.move_recipe(user.id, recipe_id, payload.folder))
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail=f"Could not move recipe: {exc.reason}") from exc


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
) -> Response:
    try:
        service.delete_recipe(user.id, recipe_id)
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Could not delete recipe.") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@community_router.get("/", response_model=list[CommunityRecipe])
def list_community_recipes(
    service: RecipeService = Depends(get_recipe_service),
) -> list[CommunityRecipe]:
    try:
        recipes = service.community_recipes()
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to fetch community recipes") from exc
    return [CommunityRecipe.from_domain(recipe) for recipe in recipes]


@community_router.get("/{recipe_id}", response_model=CommunityRecipe)
def get_community_recipe(
    recipe_id: str,
    service: RecipeService = Depends(get_recipe_service),
) -> CommunityRecipe:
    try:
        return CommunityRecipe.from_domain(service.community_recipe(recipe_id))
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except RepositoryError as exc:
        raise HTTPException(status_code=500, detail="Failed to fetch community recipe") from exc
