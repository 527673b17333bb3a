# =============================================================================
# webfrontend/dependencies.py - Shared Dependencies
# =============================================================================

from pathlib import Path
from typing import Annotated

from fastapi import Depends, Request
from fastapi.templating import Jinja2Templates

from webfrontend.weather_client import WeatherApiClient

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def get_weather_client(request: Request) -> WeatherApiClient:
    """Get the WeatherApiClient created at startup."""
    return request.app.state.weather_client


WeatherClientDep = Annotated[WeatherApiClient, Depends(get_weather_client)]
