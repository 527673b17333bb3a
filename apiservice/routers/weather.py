# =============================================================================
# apiservice/routers/weather.py - Weather Forecast Endpoint
# =============================================================================

from fastapi import APIRouter

from apiservice.dependencies import RandomSourceDep
from core.models.forecast import WeatherForecast
from core.services.forecast_service import generate_forecasts

router = APIRouter()


@router.get(
    "/weatherforecast",
    response_model=list[WeatherForecast],
    operation_id="GetWeatherForecast",
    name="GetWeatherForecast",
)
async def get_weather_forecast(random_source: RandomSourceDep):
    """
    Forecasts for the next five days.

    Values are random placeholders; the summary is not related to the
    temperature.
    """
    return generate_forecasts(random_source)
