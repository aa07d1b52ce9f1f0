# src/app/main.py
from __future__ import annotations
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from supabase import Client

from src.app.config import Settings, get_settings
from src.app.domain.errors import ConfigurationError
from src.app.infra.db.supabase_repos import create_supabase_client
from src.app.routers.auth import router as auth_router
from src.app.routers.checkout import router as checkout_router
from src.app.routers.generate import router as generate_router
from src.app.routers.recipes import community_router, router as recipes_router
from src.app.routers.webhooks import router as webhooks_router
from src.services.gemini_client import GeminiClient, GeminiPromptError

# Plain stdout logging, same for dev and containers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def _build_gemini(settings: Settings) -> Optional[GeminiClient]:
    if settings.GEMINI_API_KEY is None:
        logger.warning("GEMINI_API_KEY is not set; /generate will answer 500 until it is configured.")
        return None
    return GeminiClient(settings.GEMINI_API_KEY.get_secret_value(), model_name=settings.GEMINI_MODEL)


def _load_system_prompt(gemini: Optional[GeminiClient]) -> Optional[str]:
    if gemini is None:
        return None
    try:
        return gemini.load_system_prompt()
    except GeminiPromptError as exc:
        logger.error("System prompt unavailable; /generate will answer 500: %s", exc)
        return None


def create_app(
    settings: Optional[Settings] = None,
    supabase: Optional[Client] = None,
    gemini: Optional[GeminiClient] = None,
) -> FastAPI:
    """
    Build the API. Tests pass their own settings and clients; in production
    they are created from the environment when the app starts.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_supabase = app.state.supabase is None
        owns_gemini = app.state.gemini is None
        if owns_supabase:
            app.state.supabase = create_supabase_client(
                str(settings.SUPABASE_URL),
                settings.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
            )
        if owns_gemini:
            app.state.gemini = _build_gemini(settings)
        app.state.system_prompt = _load_system_prompt(app.state.gemini)
        logger.info("API started (env=%s)", settings.APP_ENV)
        yield
        logger.info("API shutting down")
        # injected clients belong to the caller
        if owns_supabase:
            app.state.supabase = None
        if owns_gemini:
            app.state.gemini = None
            app.state.system_prompt = None

    app = FastAPI(title="Nuggs API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.supabase = supabase
    app.state.gemini = gemini
    app.state.system_prompt = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.FRONTEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    app.include_router(generate_router)
    app.include_router(webhooks_router)
    app.include_router(checkout_router)
    app.include_router(recipes_router)
    app.include_router(community_router)
    app.include_router(auth_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
