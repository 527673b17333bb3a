# =============================================================================
# core/models/forecast.py - Weather Forecast Schema
# =============================================================================
# WeatherForecast is the only entity exchanged between the services.
# It is created fresh on every API call and never stored.
#
# JSON shape (camelCase on the wire):
#   {"date": "2024-01-16", "temperatureC": 12, "temperatureF": 53, "summary": "Cool"}
# =============================================================================

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

# Divisor of the Celsius -> Fahrenheit conversion (approximately 5/9)
CELSIUS_PER_FAHRENHEIT_DEGREE = 0.5556


def fahrenheit_from_celsius(temperature_c: int) -> int:
    """
    Convert a Celsius temperature to whole degrees Fahrenheit.

    The fractional part is truncated toward zero, so -20 C is -3 F
    (not -4 F as flooring would give).
    """
    return 32 + int(temperature_c / CELSIUS_PER_FAHRENHEIT_DEGREE)


class WeatherForecast(BaseModel):
    """
    Forecast for a single calendar day.

    temperature_f is always derived from temperature_c. It is serialized
    for clients but ignored when a forecast is parsed.

    Example:
        {
            "date": "2024-01-16",
            "temperatureC": 12,
            "summary": "Cool"
        }
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    date: dt.date = Field(
        ...,
        description="Calendar date of the forecast (no time component)"
    )

    temperature_c: int = Field(
        ...,
        description="Temperature in degrees Celsius"
    )

    summary: str | None = Field(
        default=None,
        description="Short label such as 'Chilly' or 'Hot'"
    )

    @computed_field(alias="temperatureF")
    @property
    def temperature_f(self) -> int:
        """Temperature in degrees Fahrenheit."""
        return fahrenheit_from_celsius(self.temperature_c)
