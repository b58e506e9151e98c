from __future__ import annotations
"""server/play_history/core/config.py
~~~~~~~~~~~~~~~~~~~~~~~~
Paramètres (pydantic-settings).
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg://postgres:postgres@db:5432/play_history"
    DB_CONNECT_TIMEOUT: int = Field(5, ge=1)
    REDIS_URL: str = "redis://redis:6379/0"

    # Idempotence : "memory" (process-wide) ou "redis" (partagé entre instances)
    IDEMPOTENCY_BACKEND: Literal["memory", "redis"] = "memory"
    # None => pas d'expiration (backend memory uniquement)
    IDEMPOTENCY_TTL_SECONDS: Optional[int] = Field(None, ge=1)
    IDEMPOTENCY_REDIS_TTL_SECONDS: int = Field(86_400, ge=1)
    IDEMPOTENCY_KEY_REQUIRE_UUID4: bool = True

    HISTORY_LIMIT_DEFAULT: int = Field(20, ge=1)
    HISTORY_LIMIT_MAX: int = Field(500, ge=1)
    MOST_WATCHED_LIMIT_DEFAULT: int = Field(200, ge=1)
    MOST_WATCHED_LIMIT_MAX: int = Field(5000, ge=1)

    ANONYMIZED_USER_ID: str = "user-deleted"

    CORS_ALLOW_ORIGINS: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
