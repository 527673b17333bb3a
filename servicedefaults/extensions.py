# =============================================================================
# servicedefaults/extensions.py - Service Default Steps
# =============================================================================
# The configuration steps every service in the composition applies at
# startup. Each step takes the context (or the built app), returns it for
# chaining, and does nothing when its work is already done.
#
#   add_service_defaults(ctx)      telemetry + health checks + discovery +
#                                  resilience for outbound HTTP clients
#   configure_telemetry(ctx)       logging, tracing and metrics
#   add_default_health_checks(ctx) "self" check tagged "live"
#   map_default_endpoints(app)     /health and /alive (development only)
# =============================================================================

import logging

from fastapi import FastAPI

from servicedefaults.context import HttpClientHandler, ServiceContext
from servicedefaults.discovery import ServiceDiscoveryTransport, ServiceEndpointResolver
from servicedefaults.health import LIVE_TAG, HealthCheckResult, create_health_router
from servicedefaults.resilience import ResilienceOptions, ResilientTransport
from servicedefaults.telemetry import build_telemetry, configure_logging

logger = logging.getLogger(__name__)

SELF_CHECK_NAME = "self"

# Transport stacking order: discovery resolves each attempt the
# resilience handler makes
SERVICE_DISCOVERY_HANDLER = "service_discovery"
RESILIENCE_HANDLER = "resilience"
_HANDLER_ORDER = {
    SERVICE_DISCOVERY_HANDLER: 10,
    RESILIENCE_HANDLER: 20,
}


def add_service_defaults(ctx: ServiceContext) -> ServiceContext:
    """
    Apply the standard defaults to a service.

    - Telemetry (logging, tracing, metrics, optional OTLP export)
    - Default health checks
    - Service discovery
    - Resilience and service discovery for all HTTP clients created
      afterwards through ctx.create_http_client()
    """
    configure_telemetry(ctx)
    add_default_health_checks(ctx)
    add_service_discovery(ctx)
    configure_http_client_defaults(ctx)
    return ctx


def configure_telemetry(ctx: ServiceContext) -> ServiceContext:
    """
    Enable logging, tracing and metrics for the service.

    Inbound requests, outbound HTTP calls and runtime statistics are
    instrumented; requests to the probe paths are not traced.
    """
    if ctx.telemetry is not None:
        return ctx

    configure_logging(ctx.settings)
    ctx.telemetry = build_telemetry(ctx.service_name, ctx.settings)
    return ctx


def add_default_health_checks(ctx: ServiceContext) -> ServiceContext:
    """Register a liveness check that reports the process as responsive."""
    if SELF_CHECK_NAME not in ctx.health_checks:
        ctx.health_checks.add_check(SELF_CHECK_NAME, HealthCheckResult.healthy, tags=[LIVE_TAG])
    return ctx


def add_service_discovery(ctx: ServiceContext) -> ServiceContext:
    """Register the endpoint resolver used to resolve logical service names."""
    if ctx.endpoint_resolver is None:
        ctx.endpoint_resolver = ServiceEndpointResolver()
    return ctx


def configure_http_client_defaults(
    ctx: ServiceContext,
    resilience: ResilienceOptions | None = None,
) -> ServiceContext:
    """
    Turn on resilience and service discovery for every HTTP client.

    The resolver is looked up when a client is created, so this step works
    before or after add_service_discovery.
    """
    if RESILIENCE_HANDLER not in ctx.http_client_handlers:
        options = resilience or ResilienceOptions()
        ctx.http_client_handlers[RESILIENCE_HANDLER] = HttpClientHandler(
            order=_HANDLER_ORDER[RESILIENCE_HANDLER],
            wrap=lambda transport: ResilientTransport(transport, options),
        )

    if SERVICE_DISCOVERY_HANDLER not in ctx.http_client_handlers:
        ctx.http_client_handlers[SERVICE_DISCOVERY_HANDLER] = HttpClientHandler(
            order=_HANDLER_ORDER[SERVICE_DISCOVERY_HANDLER],
            wrap=lambda transport: ServiceDiscoveryTransport(
                transport,
                ctx.endpoint_resolver or ServiceEndpointResolver(),
            ),
        )

    return ctx


def map_default_endpoints(app: FastAPI) -> FastAPI:
    """
    Map the readiness (/health) and liveness (/alive) probe routes.

    Exposing health internals outside development has security
    implications, so in any other environment nothing is mapped.
    """
    ctx: ServiceContext = app.state.service_context

    if getattr(app.state, "default_endpoints_mapped", False):
        return app

    if ctx.settings.is_development:
        app.include_router(create_health_router(ctx.health_checks))
        app.state.default_endpoints_mapped = True
    else:
        logger.info(f"Health probe endpoints not mapped in {ctx.settings.ENVIRONMENT} environment")

    return app
