# =============================================================================
# apiservice/routers/ - API Route Definitions
# =============================================================================
# - weather.py: Weather forecast endpoint
# =============================================================================

from . import weather

__all__ = [
    "weather",
]
