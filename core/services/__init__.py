# =============================================================================
# core/services/ - Domain Services
# =============================================================================

from .forecast_service import (
    FORECAST_DAYS,
    SUMMARIES,
    RandomSource,
    generate_forecasts,
    shared_random,
)

__all__ = [
    "FORECAST_DAYS",
    "SUMMARIES",
    "RandomSource",
    "generate_forecasts",
    "shared_random",
]
