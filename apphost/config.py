# =============================================================================
# apphost/config.py - AppHost Settings
# =============================================================================
# Settings for the composition root, loaded with pydantic-settings.
# Child processes inherit the environment plus the variables the apphost
# injects (ENVIRONMENT, OTEL_*, services__*).
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppHostSettings(BaseSettings):
    """Settings for starting the composed services."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment classification passed to every service"
    )

    APPHOST_HOST: str = Field(
        default="127.0.0.1",
        description="Address services are reached on from the apphost and each other"
    )

    STARTUP_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="How long to wait for a dependency's health probe to pass"
    )

    HEALTH_POLL_INTERVAL_SECONDS: float = Field(
        default=1.0,
        gt=0,
        description="Delay between health probe attempts"
    )

    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = Field(
        default=None,
        description="OTLP collector passed through to every service"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_apphost_settings() -> AppHostSettings:
    """Get cached AppHostSettings instance."""
    return AppHostSettings()
