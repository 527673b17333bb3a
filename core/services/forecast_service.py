# =============================================================================
# core/services/forecast_service.py - Placeholder Forecast Generator
# =============================================================================
# Synthesizes pseudo-random forecasts for the next FORECAST_DAYS days.
#
# Randomness comes from a RandomSource so tests can substitute a
# deterministic sequence. The default is one process-wide random.Random.
# =============================================================================

import datetime as dt
import random
from typing import Protocol

from core.models.forecast import WeatherForecast

FORECAST_DAYS = 5

# Half-open range [MIN, MAX) for generated temperatures
MIN_TEMPERATURE_C = -20
MAX_TEMPERATURE_C = 55

SUMMARIES = (
    "Freezing",
    "Bracing",
    "Chilly",
    "Cool",
    "Mild",
    "Warm",
    "Balmy",
    "Hot",
    "Sweltering",
    "Scorching",
)


class RandomSource(Protocol):
    """Anything that can draw an integer from a half-open range."""

    def randrange(self, start: int, stop: int) -> int: ...


shared_random = random.Random()


def generate_forecasts(
    random_source: RandomSource | None = None,
    today: dt.date | None = None,
    days: int = FORECAST_DAYS,
) -> list[WeatherForecast]:
    """
    Generate one forecast per day starting tomorrow.

    The summary is drawn independently of the temperature.

    Args:
        random_source: Source of random integers (defaults to shared_random)
        today: Reference date (defaults to the local date)
        days: Number of forecasts to generate

    Returns:
        Forecasts for today + 1 ... today + days, in ascending date order
    """
    source = random_source if random_source is not None else shared_random
    start = today if today is not None else dt.date.today()

    return [
        WeatherForecast(
            date=start + dt.timedelta(days=offset),
            temperature_c=source.randrange(MIN_TEMPERATURE_C, MAX_TEMPERATURE_C),
            summary=SUMMARIES[source.randrange(0, len(SUMMARIES))],
        )
        for offset in range(1, days + 1)
    ]
