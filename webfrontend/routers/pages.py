# =============================================================================
# webfrontend/routers/pages.py - Page Routes
# =============================================================================

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from webfrontend.dependencies import WeatherClientDep, templates

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """Landing page."""
    return templates.TemplateResponse(request, "home.html", {"title": "Home"})


@router.get("/weather", response_class=HTMLResponse)
async def weather(request: Request, weather_client: WeatherClientDep):
    """Render forecasts fetched from the weather API."""
    max_items = request.app.state.service_context.settings.MAX_FORECASTS
    forecasts = await weather_client.get_forecasts(max_items=max_items)
    return templates.TemplateResponse(
        request,
        "weather.html",
        {"title": "Weather", "forecasts": forecasts},
    )
