# =============================================================================
# servicedefaults/ - Shared Service Defaults
# =============================================================================
# Cross-cutting defaults every service in the composition applies:
# - config.py: ServiceSettings (environment, OTLP endpoint)
# - context.py: ServiceContext, the mutable startup context
# - extensions.py: add_service_defaults and the individual default steps
# - telemetry.py: OpenTelemetry logging, tracing and metrics
# - health.py: Health check registry and probe routes
# - discovery.py: Logical service name resolution for httpx
# - resilience.py: Retry, circuit breaker and timeouts for httpx
# - exceptions.py: Error types and problem-details handlers
# =============================================================================

from servicedefaults.config import ServiceSettings, get_settings
from servicedefaults.context import ServiceContext
from servicedefaults.exceptions import (
    CircuitOpenError,
    ServiceDefaultsError,
    ServiceResolutionError,
    add_problem_details,
)
from servicedefaults.extensions import (
    add_default_health_checks,
    add_service_defaults,
    add_service_discovery,
    configure_http_client_defaults,
    configure_telemetry,
    map_default_endpoints,
)

__all__ = [
    # Config
    "ServiceSettings",
    "get_settings",
    # Context
    "ServiceContext",
    # Default steps
    "add_service_defaults",
    "configure_telemetry",
    "add_default_health_checks",
    "add_service_discovery",
    "configure_http_client_defaults",
    "map_default_endpoints",
    # Errors
    "ServiceDefaultsError",
    "ServiceResolutionError",
    "CircuitOpenError",
    "add_problem_details",
]
