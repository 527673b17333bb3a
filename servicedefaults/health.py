# =============================================================================
# servicedefaults/health.py - Health Checks and Probe Endpoints
# =============================================================================
# A small registry of named, tagged health checks and the router that
# exposes them:
# - /health: readiness, every registered check must pass
# - /alive: liveness, only checks tagged "live" must pass
#
# Probe routes are only mapped in development (see extensions.py).
# =============================================================================

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Union

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT_PATH = "/health"
ALIVENESS_ENDPOINT_PATH = "/alive"
LIVE_TAG = "live"


class HealthStatus(str, Enum):
    """
    Result of a health check, ordered from worst to best.

    Degraded still counts as passing for probes.
    """
    UNHEALTHY = "Unhealthy"
    DEGRADED = "Degraded"
    HEALTHY = "Healthy"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    HealthStatus.UNHEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.HEALTHY: 2,
}


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of one health check."""
    status: HealthStatus
    description: str | None = None
    exception: BaseException | None = None

    @classmethod
    def healthy(cls, description: str | None = None) -> "HealthCheckResult":
        return cls(HealthStatus.HEALTHY, description)

    @classmethod
    def degraded(cls, description: str | None = None) -> "HealthCheckResult":
        return cls(HealthStatus.DEGRADED, description)

    @classmethod
    def unhealthy(
        cls,
        description: str | None = None,
        exception: BaseException | None = None,
    ) -> "HealthCheckResult":
        return cls(HealthStatus.UNHEALTHY, description, exception)


HealthCheck = Callable[[], Union[HealthCheckResult, Awaitable[HealthCheckResult]]]
HealthCheckPredicate = Callable[["HealthCheckRegistration"], bool]


@dataclass(frozen=True)
class HealthCheckRegistration:
    """A named check and its tags."""
    name: str
    check: HealthCheck
    tags: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class HealthReport:
    """Aggregated result of running a set of checks."""
    status: HealthStatus
    entries: dict[str, HealthCheckResult]


class HealthCheckRegistry:
    """
    Registry of health checks.

    Registering a name that already exists replaces the previous check,
    so adding the default checks twice leaves a single entry.
    """

    def __init__(self):
        self._registrations: dict[str, HealthCheckRegistration] = {}

    def add_check(
        self,
        name: str,
        check: HealthCheck,
        tags: Iterable[str] = (),
    ) -> "HealthCheckRegistry":
        """
        Register a check.

        Args:
            name: Unique check name
            check: Callable (sync or async) returning a HealthCheckResult
            tags: Tags used by probe predicates (e.g., "live")

        Returns:
            The registry, for chaining
        """
        self._registrations[name] = HealthCheckRegistration(name, check, frozenset(tags))
        return self

    @property
    def registrations(self) -> list[HealthCheckRegistration]:
        return list(self._registrations.values())

    def __contains__(self, name: str) -> bool:
        return name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    async def run(self, predicate: HealthCheckPredicate | None = None) -> HealthReport:
        """
        Run every check accepted by the predicate.

        A check that raises is reported as Unhealthy. The overall status
        is the worst individual status (Healthy when nothing ran).
        """
        entries: dict[str, HealthCheckResult] = {}

        for registration in self._registrations.values():
            if predicate is not None and not predicate(registration):
                continue
            entries[registration.name] = await _run_check(registration)

        status = min(
            (entry.status for entry in entries.values()),
            key=lambda s: s.rank,
            default=HealthStatus.HEALTHY,
        )
        return HealthReport(status, entries)


async def _run_check(registration: HealthCheckRegistration) -> HealthCheckResult:
    try:
        result = registration.check()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.error(f"Health check '{registration.name}' failed: {e}")
        return HealthCheckResult.unhealthy(str(e), e)


def has_tag(tag: str) -> HealthCheckPredicate:
    """Predicate accepting checks that carry the given tag."""
    return lambda registration: tag in registration.tags


# =============================================================================
# Endpoints
# =============================================================================

def _probe_response(report: HealthReport) -> PlainTextResponse:
    status_code = 503 if report.status is HealthStatus.UNHEALTHY else 200
    return PlainTextResponse(
        report.status.value,
        status_code=status_code,
        headers={"Cache-Control": "no-store, no-cache", "Pragma": "no-cache"},
    )


def create_health_router(registry: HealthCheckRegistry) -> APIRouter:
    """Create the readiness and liveness probe routes for a registry."""
    router = APIRouter()

    @router.get(HEALTH_ENDPOINT_PATH, response_class=PlainTextResponse, include_in_schema=False)
    async def health_check():
        """All health checks must pass for the app to accept traffic."""
        return _probe_response(await registry.run())

    @router.get(ALIVENESS_ENDPOINT_PATH, response_class=PlainTextResponse, include_in_schema=False)
    async def liveness_check():
        """Only checks tagged "live" must pass for the app to be considered alive."""
        return _probe_response(await registry.run(has_tag(LIVE_TAG)))

    return router
