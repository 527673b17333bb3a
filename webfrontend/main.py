# =============================================================================
# webfrontend/main.py - FastAPI Application Entry Point
# =============================================================================
# Builds the web frontend with the shared service defaults applied.
# The weather API is reached through an HTTP client that resolves the
# logical name "apiservice" and retries transient failures.
#
# Usage:
#   uvicorn webfrontend.main:app --reload
# =============================================================================

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from servicedefaults import ServiceContext, add_service_defaults, map_default_endpoints
from webfrontend.config import WebSettings, get_web_settings
from webfrontend.dependencies import templates
from webfrontend.routers import pages
from webfrontend.weather_client import WeatherApiClient

logger = logging.getLogger(__name__)

SERVICE_NAME = "webfrontend"


async def error_page_handler(request: Request, exc: Exception) -> HTMLResponse:
    """Render the error page instead of exception details."""
    request_id = uuid.uuid4().hex
    logger.exception(f"Unhandled exception (request {request_id}) on {request.url.path}: {exc}")
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Error", "request_id": request_id},
        status_code=500,
    )


def create_app(settings: WebSettings | None = None) -> FastAPI:
    """
    Create and configure the web frontend.

    Args:
        settings: Optional settings (defaults to the environment)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_web_settings()

    ctx = ServiceContext(SERVICE_NAME, settings)
    add_service_defaults(ctx)

    app = ctx.build(
        title="Family Copilot",
        debug=settings.DEBUG,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )

    http_client = ctx.create_http_client(base_url=settings.APISERVICE_URL)
    app.state.weather_client = WeatherApiClient(http_client)

    if not settings.is_development:
        app.add_exception_handler(Exception, error_page_handler)

    app.include_router(pages.router, tags=["Pages"])

    map_default_endpoints(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_web_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
