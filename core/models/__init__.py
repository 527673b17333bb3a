# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# These models define the "contract" between the API service and its clients.
# =============================================================================

from .forecast import WeatherForecast, fahrenheit_from_celsius

__all__ = [
    "WeatherForecast",
    "fahrenheit_from_celsius",
]
