# =============================================================================
# servicedefaults/discovery.py - Service Discovery
# =============================================================================
# Resolves logical service names (http://apiservice) to concrete endpoints
# at request time.
#
# Endpoints come from configuration keys of the form
#   services__<service>__<endpoint name>__<index>=<url>
# e.g. services__apiservice__http__0=http://127.0.0.1:5312
# which the apphost sets for every referenced resource.
#
# A "https+http://" scheme means "prefer https, fall back to http".
# =============================================================================

import logging
import os
from collections.abc import Mapping

import httpx

from servicedefaults.exceptions import ServiceResolutionError

logger = logging.getLogger(__name__)

SERVICES_PREFIX = "services__"


def _sort_key(index: str) -> tuple[int, str]:
    return (int(index), "") if index.isdigit() else (1 << 31, index)


class ServiceEndpointResolver:
    """
    Maps a logical service name to endpoint URLs.

    Args:
        config: Key/value configuration to read services__* keys from
            (defaults to the process environment, read on every lookup)
    """

    def __init__(self, config: Mapping[str, str] | None = None):
        self._config = config

    @property
    def config(self) -> Mapping[str, str]:
        return self._config if self._config is not None else os.environ

    def endpoints(self, service_name: str) -> dict[str, list[str]]:
        """
        Get all configured endpoints of a service, grouped by endpoint name.

        Returns:
            {"https": ["https://..."], "http": ["http://..."]}; empty when
            the service is not configured
        """
        prefix = f"{SERVICES_PREFIX}{service_name}__".lower()
        found: dict[str, list[tuple[str, str]]] = {}

        for key, value in self.config.items():
            if not key.lower().startswith(prefix) or not value.strip():
                continue
            parts = key[len(prefix):].split("__")
            endpoint_name = parts[0].lower()
            index = parts[1] if len(parts) > 1 else "0"
            found.setdefault(endpoint_name, []).append((index, value.strip()))

        return {
            name: [url for _, url in sorted(entries, key=lambda e: _sort_key(e[0]))]
            for name, entries in found.items()
        }

    def is_configured(self, service_name: str) -> bool:
        return bool(self.endpoints(service_name))

    def resolve(self, url: httpx.URL) -> httpx.URL:
        """
        Rewrite a logical URL to a concrete one.

        Hosts without configuration pass through; a composite scheme is
        then replaced by its first (preferred) scheme.

        Raises:
            ServiceResolutionError: The service is configured but has no
                endpoint for any allowed scheme
        """
        schemes = url.scheme.split("+")
        endpoints = self.endpoints(url.host)

        if not endpoints:
            if len(schemes) > 1:
                return url.copy_with(scheme=schemes[0])
            return url

        for scheme in schemes:
            candidates = endpoints.get(scheme)
            if candidates:
                target = httpx.URL(candidates[0])
                return url.copy_with(
                    scheme=target.scheme,
                    host=target.host,
                    port=target.port,
                )

        raise ServiceResolutionError(url.host, schemes)


class ServiceDiscoveryTransport(httpx.AsyncBaseTransport):
    """httpx transport that resolves the request host before sending it on."""

    def __init__(self, transport: httpx.AsyncBaseTransport, resolver: ServiceEndpointResolver):
        self._transport = transport
        self._resolver = resolver

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        resolved = self._resolver.resolve(request.url)
        if resolved != request.url:
            logger.debug(f"Resolved {request.url.host} -> {resolved.netloc.decode('ascii')}")
            request.url = resolved
            request.headers["Host"] = resolved.netloc.decode("ascii")
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()
