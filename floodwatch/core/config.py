"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
The Settings instance is frozen: it is built once at startup and handed
to every component explicitly.

Usage:
    from floodwatch.core.config import get_settings
    settings = get_settings()
    print(settings.PREDICTION_API_URL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from floodwatch import __version__


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: init kwargs > env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # ── Application ──
    APP_NAME: str = "FloodWatch"
    APP_VERSION: str = __version__
    ENVIRONMENT: str = "development"  # development | staging | production
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ── Weather API ──
    OPEN_METEO_URL: str = "https://api.open-meteo.com/v1/forecast"
    FORECAST_TIMEZONE: str = "Africa/Lagos"

    # ── Downstream services ──
    PREDICTION_API_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("PREDICTION_API_URL", "PYTHON_API_URL"),
    )
    NOTIFY_URL: Optional[str] = None
    KEEP_ALIVE_URL: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ── Batch run ──
    MAX_CONCURRENT_LOCATIONS: int = Field(default=4, ge=1)
    LOCATIONS_FILE: Optional[str] = None
    SHUTDOWN_GRACE_SECONDS: float = Field(default=10.0, ge=0)

    # ── Scheduling ──
    SCHEDULER_ENABLED: bool = True
    DAILY_CHECK_HOUR: int = Field(default=6, ge=0, le=23)
    DAILY_CHECK_MINUTE: int = Field(default=0, ge=0, le=59)
    KEEP_ALIVE_INTERVAL_MINUTES: int = Field(default=10, ge=1)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def keep_alive_target(self) -> str:
        """URL pinged by the keep-alive trigger; defaults to this process."""
        return self.KEEP_ALIVE_URL or f"http://localhost:{self.PORT}"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
