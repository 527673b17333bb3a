# =============================================================================
# servicedefaults/context.py - Service Startup Context
# =============================================================================
# ServiceContext collects configuration before the FastAPI application is
# built. The default steps in extensions.py only fill in their own slot
# of the context, which keeps them idempotent and order-independent.
#
# Usage:
#   ctx = ServiceContext("apiservice")
#   add_service_defaults(ctx)
#   app = ctx.build(title="API")
#   map_default_endpoints(app)
# =============================================================================

import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

import httpx
from fastapi import FastAPI

from servicedefaults.config import ServiceSettings, get_settings
from servicedefaults.discovery import ServiceEndpointResolver
from servicedefaults.health import HealthCheckRegistry
from servicedefaults.telemetry import Telemetry

logger = logging.getLogger(__name__)

ShutdownCallback = Callable[[], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class HttpClientHandler:
    """
    Transport decorator applied to every HTTP client the context creates.

    Handlers wrap the base transport in ascending `order`, so a lower
    order sits closer to the network regardless of registration order.
    """
    order: int
    wrap: Callable[[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport]


class ServiceContext:
    """
    Mutable configuration of one service, consumed by build().

    Attributes:
        service_name: Logical name of the service (e.g., "apiservice")
        settings: Service settings
        health_checks: Registered health checks
        telemetry: Providers, once configure_telemetry has run
        endpoint_resolver: Service discovery, once registered
        http_client_handlers: Named transport decorators for HTTP clients
    """

    def __init__(self, service_name: str, settings: ServiceSettings | None = None):
        self.service_name = service_name
        self.settings = settings or get_settings()
        self.health_checks = HealthCheckRegistry()
        self.telemetry: Telemetry | None = None
        self.endpoint_resolver: ServiceEndpointResolver | None = None
        self.http_client_handlers: dict[str, HttpClientHandler] = {}
        self._shutdown_callbacks: list[ShutdownCallback] = []

    def on_shutdown(self, callback: ShutdownCallback) -> "ServiceContext":
        """Register a callback run when the built application shuts down."""
        self._shutdown_callbacks.append(callback)
        return self

    # -------------------------------------------------------------------------
    # HTTP clients
    # -------------------------------------------------------------------------

    def create_http_client(
        self,
        base_url: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """
        Create an httpx.AsyncClient with the registered client defaults.

        The client is closed automatically when the application shuts down.

        Args:
            base_url: Base URL, may use a logical service name
                (e.g., "https+http://apiservice")
            transport: Innermost transport (defaults to a real network transport)
            **kwargs: Passed through to httpx.AsyncClient

        Returns:
            Configured client
        """
        wrapped = transport or httpx.AsyncHTTPTransport()
        for handler in sorted(self.http_client_handlers.values(), key=lambda h: h.order):
            wrapped = handler.wrap(wrapped)

        # Retries and timeouts are handled by the resilience handler
        kwargs.setdefault("timeout", None)
        client = httpx.AsyncClient(base_url=base_url, transport=wrapped, **kwargs)

        if self.telemetry is not None:
            self.telemetry.instrument_client(client)

        self.on_shutdown(client.aclose)
        return client

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def build(self, **kwargs: Any) -> FastAPI:
        """
        Build the FastAPI application from this context.

        The context is stored on app.state.service_context so endpoint
        mapping functions can reach it.
        """
        app = FastAPI(lifespan=self._lifespan, **kwargs)
        app.state.service_context = self

        if self.telemetry is not None:
            self.telemetry.instrument_app(app)

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        logger.info(f"Starting {self.service_name} in {self.settings.ENVIRONMENT} mode")

        yield

        logger.info(f"Shutting down {self.service_name}")
        await self.shutdown()

    async def shutdown(self) -> None:
        """Run shutdown callbacks (last registered first) and flush telemetry."""
        while self._shutdown_callbacks:
            callback = self._shutdown_callbacks.pop()
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Shutdown callback failed: {e}")

        if self.telemetry is not None:
            self.telemetry.shutdown()
