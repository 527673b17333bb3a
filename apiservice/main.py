# =============================================================================
# apiservice/main.py - FastAPI Application Entry Point
# =============================================================================
# Builds the weather API with the shared service defaults applied.
#
# Usage:
#   uvicorn apiservice.main:app --reload
# =============================================================================

import logging

from fastapi import FastAPI

from apiservice.routers import weather
from servicedefaults import (
    ServiceContext,
    ServiceSettings,
    add_problem_details,
    add_service_defaults,
    get_settings,
    map_default_endpoints,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "apiservice"

# Path of the OpenAPI document (development only)
OPENAPI_URL = "/openapi/v1.json"


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """
    Create and configure the API service.

    Args:
        settings: Optional settings (defaults to the environment)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    ctx = ServiceContext(SERVICE_NAME, settings)
    add_service_defaults(ctx)

    app = ctx.build(
        title="Weather API",
        description="Placeholder weather forecasts for the web frontend.",
        version="1.0.0",
        openapi_url=OPENAPI_URL if settings.is_development else None,
        docs_url=None,
        redoc_url=None,
    )

    add_problem_details(app)

    app.include_router(weather.router, tags=["Weather"])

    map_default_endpoints(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
