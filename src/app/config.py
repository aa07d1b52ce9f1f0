from __future__ import annotations

from functools import lru_cache

from pydantic import AnyUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: AnyUrl
    SUPABASE_SERVICE_ROLE_KEY: SecretStr
    APP_ENV: str = "local"
    APP_URL: str = "http://localhost:3000"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "https://nuggs.ai"],
    )

    GEMINI_API_KEY: SecretStr | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash-latest"

    # Free-tier thresholds per calendar day
    FREE_TRIES: int = Field(default=5, ge=0)
    ANONYMOUS_FREE_TRIES: int = Field(default=3, ge=0)
    # Reverse proxies in front of the API that append to X-Forwarded-For.
    # 0 means the socket peer is the client and forwarded headers are ignored.
    TRUSTED_PROXY_COUNT: int = Field(default=0, ge=0)

    STRIPE_SECRET_KEY: SecretStr | None = None
    STRIPE_WEBHOOK_SECRET: SecretStr | None = None
    STRIPE_PREMIUM_PRICE_ID: str | None = None

    PADDLE_API_KEY: SecretStr | None = None
    PADDLE_WEBHOOK_SECRET: SecretStr | None = None
    PADDLE_PREMIUM_PRICE_ID: str | None = None
    PADDLE_API_BASE_URL: str = "https://api.paddle.com"


@lru_cache
def get_settings() -> Settings:
    return Settings()
