from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Settings are loaded from environment variables with optional .env file override.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging and whether the mock status client is allowed."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging and development features."""

    APP_NAME: str = "Compliance Console"
    """Display name used in logs and the HTTP API title."""

    # Status query service
    STATUS_CLIENT_TYPE: Literal["http", "mock"] = "http"
    """Which status client to build: the REST API client or the local simulator."""

    STATUS_API_BASE_URL: str = "http://localhost:8080/api"
    """Base URL of the back-office REST API."""

    STATUS_API_TOKEN: Optional[str] = None
    """Bearer token sent with status queries, if the API requires one."""

    STATUS_API_TIMEOUT: float = 10.0
    """Timeout in seconds for a single status request."""

    STATUS_API_RETRY_ATTEMPTS: int = 1
    """Transport-level attempts per status request (1 = no retry)."""

    # Monitoring defaults
    MONITOR_POLL_INTERVAL_MS: int = 2000
    """Default cadence between status queries, in milliseconds."""

    MONITOR_MAX_ATTEMPTS: int = 150
    """Default query budget per monitoring session (150 x 2s = 5 minutes)."""

    NOTIFICATION_FEED_SIZE: int = 100
    """How many recent notifications the HTTP API keeps for display."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
