# =============================================================================
# webfrontend/config.py - Frontend Settings
# =============================================================================

from functools import lru_cache

from pydantic import Field

from servicedefaults.config import ServiceSettings


class WebSettings(ServiceSettings):
    """Service settings plus the location of the weather API."""

    # "https+http" prefers HTTPS and falls back to HTTP; the host is the
    # logical service name resolved by service discovery
    APISERVICE_URL: str = Field(
        default="https+http://apiservice",
        description="Base URL of the weather API (logical service name)"
    )

    MAX_FORECASTS: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of forecasts shown on the weather page"
    )


@lru_cache
def get_web_settings() -> WebSettings:
    """Get cached WebSettings instance."""
    return WebSettings()
