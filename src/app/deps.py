# src/app/deps.py (clients live on app.state, created in the lifespan handler)

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client

from src.app.config import Settings
from src.app.domain.errors import ConfigurationError
from src.app.infra.db.base import ProfileRepository, RecipeRepository, UsageRepository
from src.app.infra.db.supabase_repos import (
    SupabaseProfileRepository,
    SupabaseRecipeRepository,
    SupabaseUsageRepository,
)
from src.app.services.checkout_service import CheckoutService
from src.app.services.entitlement_service import EntitlementService
from src.app.services.generation_service import GenerationService
from src.app.services.recipes import RecipeService
from src.app.services.subscriptions import SubscriptionReconciler
from src.app.services.usage_ledger import UsageLedger
from src.services.gemini_client import GeminiClient, GeminiPromptError

logger = logging.getLogger(__name__)

API_KEY_MISSING = "API key not configured on server."
SYSTEM_PROMPT_MISSING = "System prompt not available on server."


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_supabase(request: Request) -> Client:
    client = getattr(request.app.state, "supabase", None)
    if client is None:
        raise HTTPException(status_code=500, detail="Database client not initialized")
    return client


def get_gemini_client(request: Request) -> Optional[GeminiClient]:
    return getattr(request.app.state, "gemini", None)


def get_system_prompt(
    request: Request,
    gemini: Optional[GeminiClient] = Depends(get_gemini_client),
) -> str:
    """
    System prompt read once per app. Startup normally loads it; if that
    failed the read is retried here and cached on success.
    """
    prompt = getattr(request.app.state, "system_prompt", None)
    if prompt is not None:
        return prompt
    if gemini is None:
        raise ConfigurationError("GEMINI_API_KEY", API_KEY_MISSING)
    try:
        prompt = gemini.load_system_prompt()
    except GeminiPromptError as exc:
        logger.error("Cannot load system prompt: %s", exc)
        raise ConfigurationError("SYSTEM_PROMPT", SYSTEM_PROMPT_MISSING) from exc
    request.app.state.system_prompt = prompt
    return prompt


def get_profile_repository(supa: Client = Depends(get_supabase)) -> ProfileRepository:
    return SupabaseProfileRepository(supa)


def get_usage_repository(supa: Client = Depends(get_supabase)) -> UsageRepository:
    return SupabaseUsageRepository(supa)


def get_recipe_repository(supa: Client = Depends(get_supabase)) -> RecipeRepository:
    return SupabaseRecipeRepository(supa)


def get_entitlement_service(
    profiles: ProfileRepository = Depends(get_profile_repository),
    usage: UsageRepository = Depends(get_usage_repository),
    settings: Settings = Depends(get_settings_dep),
) -> EntitlementService:
    return EntitlementService(
        profiles,
        usage,
        free_tries=settings.FREE_TRIES,
        anonymous_free_tries=settings.ANONYMOUS_FREE_TRIES,
    )


def get_recipe_service(recipes: RecipeRepository = Depends(get_recipe_repository)) -> RecipeService:
    return RecipeService(recipes)


def get_generation_service(
    gemini: Optional[GeminiClient] = Depends(get_gemini_client),
    entitlements: EntitlementService = Depends(get_entitlement_service),
    usage: UsageRepository = Depends(get_usage_repository),
    recipes: RecipeService = Depends(get_recipe_service),
    system_prompt: str = Depends(get_system_prompt),
) -> GenerationService:
    if gemini is None:
        raise ConfigurationError("GEMINI_API_KEY", API_KEY_MISSING)
    return GenerationService(
        entitlements,
        UsageLedger(usage),
        recipes,
        gemini,
        system_instruction=system_prompt,
    )


def get_reconciler(profiles: ProfileRepository = Depends(get_profile_repository)) -> SubscriptionReconciler:
    return SubscriptionReconciler(profiles)


def get_checkout_service(settings: Settings = Depends(get_settings_dep)) -> CheckoutService:
    return CheckoutService(settings)


def resolve_client_ip(
    peer: Optional[str],
    forwarded_for: Optional[str],
    real_ip: Optional[str],
    trusted_proxies: int,
) -> Optional[str]:
    """
    Pick the metering key for an anonymous caller.

    Without trusted proxies the socket peer is used and forwarded headers are
    ignored, since any client can set them. With N trusted proxies the client
    is the N-th X-Forwarded-For entry from the right; entries further left
    were supplied by the caller.
    """
    if trusted_proxies <= 0:
        return peer

    hops = [hop.strip() for hop in (forwarded_for or "").split(",") if hop.strip()]
    if hops:
        return hops[-trusted_proxies] if len(hops) >= trusted_proxies else hops[0]
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return peer


def get_client_ip(request: Request, settings: Settings = Depends(get_settings_dep)) -> Optional[str]:
    return resolve_client_ip(
        request.client.host if request.client else None,
        request.headers.get("x-forwarded-for"),
        request.headers.get("x-real-ip"),
        settings.TRUSTED_PROXY_COUNT,
    )


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


def _resolve_user(supa: Client, token: str) -> CurrentUser:
    """
    Validate a Supabase access token with GoTrue and return minimal user data.
    """
    try:
        res = supa.auth.get_user(token)
    except Exception as exc:
        logger.info("Token validation failed: %s", exc.__class__.__name__)
        raise HTTPException(status_code=401, detail="Invalid/expired token") from exc

    user = res.user if res else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")

    # metadata may carry a display name
    name = None
    meta = getattr(user, "user_metadata", None) or {}
    if isinstance(meta, dict):
        name = meta.get("name")

    return CurrentUser(id=str(user.id), email=user.email, name=name)


def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    return _resolve_user(supa, cred.credentials)


def get_optional_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser | None:
    """Anonymous callers send no token; a token that is sent must be valid."""
    if cred is None or cred.scheme.lower() != "bearer":
        return None
    return _resolve_user(supa, cred.credentials)
