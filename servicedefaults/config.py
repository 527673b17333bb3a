# =============================================================================
# servicedefaults/config.py - Service Settings
# =============================================================================
# Settings shared by every service in the composition, loaded from
# environment variables using pydantic-settings.
#
# Usage:
#   from servicedefaults.config import get_settings
#   settings = get_settings()
#   if settings.is_development: ...
#
# Environment variables are loaded from:
# 1. System environment variables (set by the apphost for child processes)
# 2. .env file in the working directory (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    """
    Settings common to the API service and the web frontend.

    Services that need more configuration subclass this and add fields.
    """

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="production",
        description="Environment classification (probe routes and OpenAPI only in development)"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    API_HOST: str = Field(
        default="127.0.0.1",
        description="Host to bind the server to when run directly"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the server when run directly"
    )

    # -------------------------------------------------------------------------
    # OpenTelemetry
    # -------------------------------------------------------------------------
    # Export is enabled only when the endpoint is set and non-blank

    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = Field(
        default=None,
        description="OTLP collector base URL (e.g., http://localhost:4318)"
    )

    OTEL_SERVICE_NAME: str | None = Field(
        default=None,
        description="Overrides the service name reported in telemetry"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        # The same .env file carries keys for other services
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def otlp_endpoint(self) -> str | None:
        """OTLP endpoint with whitespace stripped, or None when blank."""
        if self.OTEL_EXPORTER_OTLP_ENDPOINT is None:
            return None
        endpoint = self.OTEL_EXPORTER_OTLP_ENDPOINT.strip()
        return endpoint or None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"


@lru_cache
def get_settings() -> ServiceSettings:
    """
    Get cached ServiceSettings instance.

    Parses the environment and .env once per process.
    """
    return ServiceSettings()
