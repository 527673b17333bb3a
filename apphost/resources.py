# =============================================================================
# apphost/resources.py - Distributed Application Model
# =============================================================================
# A small declarative model of the services to run:
#
#   builder = DistributedApplicationBuilder("Family Copilot")
#   api = builder.add_project("apiservice", "apiservice.main:app")
#   builder.add_project("web", "webfrontend.main:app").with_reference(api).wait_for(api)
#   asyncio.run(builder.build().run())
#
# Each project runs as a uvicorn child process. A reference injects the
# referenced service's URL as a service discovery variable; wait_for
# delays start-up until the dependency's health probe returns 200.
# =============================================================================

import asyncio
import logging
import os
import socket
import sys
from typing import Protocol

import httpx

from apphost.config import AppHostSettings, get_apphost_settings
from apphost.exceptions import CompositionError

logger = logging.getLogger(__name__)

# Seconds to wait for a child process after SIGTERM before killing it
STOP_TIMEOUT = 10.0


class Process(Protocol):
    """The parts of asyncio.subprocess.Process the apphost uses."""

    returncode: int | None

    async def wait(self) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


def _free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class ProjectResource:
    """
    A Python ASGI application to run as one deployable unit.

    Configuration methods return the resource so calls can be chained.
    """

    def __init__(self, name: str, app: str, port: int | None = None):
        self.name = name
        self.app = app
        self.port = port
        self.health_check_path: str | None = None
        self.external = False
        self.references: list["ProjectResource"] = []
        self.wait_for_resources: list["ProjectResource"] = []
        self.environment: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"ProjectResource({self.name!r}, {self.app!r})"

    def with_http_health_check(self, path: str = "/health") -> "ProjectResource":
        """Probe this path over HTTP to decide whether the resource is healthy."""
        self.health_check_path = path
        return self

    def with_external_http_endpoints(self) -> "ProjectResource":
        """Listen on all interfaces instead of loopback only."""
        self.external = True
        return self

    def with_reference(self, resource: "ProjectResource") -> "ProjectResource":
        """Make the resource's endpoint discoverable by its logical name."""
        if resource not in self.references:
            self.references.append(resource)
        return self

    def wait_for(self, resource: "ProjectResource") -> "ProjectResource":
        """Start only after the resource reports healthy."""
        if resource not in self.wait_for_resources:
            self.wait_for_resources.append(resource)
        return self

    def with_environment(self, name: str, value: str) -> "ProjectResource":
        self.environment[name] = value
        return self


class DistributedApplicationBuilder:
    """Collects project resources and validates the topology."""

    def __init__(self, application_name: str, settings: AppHostSettings | None = None):
        self.application_name = application_name
        self.settings = settings or get_apphost_settings()
        self._resources: dict[str, ProjectResource] = {}

    @property
    def resources(self) -> list[ProjectResource]:
        return list(self._resources.values())

    def add_project(self, name: str, app: str, port: int | None = None) -> ProjectResource:
        """
        Register an ASGI application under a logical name.

        Args:
            name: Logical service name (used for discovery)
            app: uvicorn import string, e.g. "apiservice.main:app"
            port: Fixed port (a free port is picked when omitted)

        Raises:
            CompositionError: The name is already registered
        """
        if name in self._resources:
            raise CompositionError(
                f"Resource '{name}' is already registered",
                code="DUPLICATE_RESOURCE",
                details={"resource": name},
            )
        resource = ProjectResource(name, app, port)
        self._resources[name] = resource
        return resource

    def build(self, transport: httpx.AsyncBaseTransport | None = None) -> "DistributedApplication":
        """
        Validate the topology and produce a runnable application.

        Args:
            transport: httpx transport for health probes (defaults to the network)

        Raises:
            CompositionError: A reference or wait_for target is not registered
                in this builder, or wait_for edges form a cycle
        """
        for resource in self._resources.values():
            for dependency in resource.references + resource.wait_for_resources:
                if self._resources.get(dependency.name) is not dependency:
                    raise CompositionError(
                        f"Resource '{resource.name}' depends on unknown resource '{dependency.name}'",
                        code="UNKNOWN_RESOURCE",
                        suggestion="Register the dependency with add_project() on the same builder",
                        details={"resource": resource.name, "dependency": dependency.name},
                    )

        return DistributedApplication(
            self.application_name,
            self._start_order(),
            self.settings,
            transport,
        )

    def _start_order(self) -> list[ProjectResource]:
        # Kahn's algorithm, stable with respect to registration order
        pending = list(self._resources.values())
        started: list[ProjectResource] = []

        while pending:
            ready = next(
                (r for r in pending if all(d in started for d in r.wait_for_resources)),
                None,
            )
            if ready is None:
                names = ", ".join(r.name for r in pending)
                raise CompositionError(
                    f"wait_for dependencies form a cycle between: {names}",
                    code="DEPENDENCY_CYCLE",
                    details={"resources": [r.name for r in pending]},
                )
            pending.remove(ready)
            started.append(ready)

        return started


class DistributedApplication:
    """
    A validated topology that can be started.

    Args:
        application_name: Display name
        start_order: Resources in dependency order
        settings: AppHost settings
        transport: httpx transport used for health probes
    """

    def __init__(
        self,
        application_name: str,
        start_order: list[ProjectResource],
        settings: AppHostSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.application_name = application_name
        self.start_order = start_order
        self.settings = settings
        self._transport = transport
        self.processes: dict[str, Process] = {}

        for resource in start_order:
            if resource.port is None:
                resource.port = _free_port(settings.APPHOST_HOST)

    def url_for(self, resource: ProjectResource) -> str:
        return f"http://{self.settings.APPHOST_HOST}:{resource.port}"

    def environment_for(self, resource: ProjectResource) -> dict[str, str]:
        """Environment of the resource's child process."""
        env = dict(os.environ)
        env["ENVIRONMENT"] = self.settings.ENVIRONMENT
        env["OTEL_SERVICE_NAME"] = resource.name
        env["PYTHONUNBUFFERED"] = "1"

        endpoint = (self.settings.OTEL_EXPORTER_OTLP_ENDPOINT or "").strip()
        if endpoint:
            env["OTEL_EXPORTER_OTLP_ENDPOINT"] = endpoint

        for reference in resource.references:
            env[f"services__{reference.name}__http__0"] = self.url_for(reference)

        env.update(resource.environment)
        return env

    def command_for(self, resource: ProjectResource) -> list[str]:
        bind_host = "0.0.0.0" if resource.external else self.settings.APPHOST_HOST
        return [
            sys.executable, "-m", "uvicorn", resource.app,
            "--host", bind_host,
            "--port", str(resource.port),
        ]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Start every resource, then run until one exits or the task is cancelled."""
        logger.info(f"Starting {self.application_name}")
        try:
            await self.start()
            await self._wait_for_exit()
        finally:
            await self.stop()

    async def start(self) -> None:
        """Start resources in order, waiting for dependencies to be healthy."""
        for resource in self.start_order:
            for dependency in resource.wait_for_resources:
                logger.info(f"{resource.name} is waiting for {dependency.name}")
                await self.wait_until_healthy(dependency)

            logger.info(f"Starting {resource.name} at {self.url_for(resource)}")
            self.processes[resource.name] = await self._launch(resource)

    async def _launch(self, resource: ProjectResource) -> Process:
        return await asyncio.create_subprocess_exec(
            *self.command_for(resource),
            env=self.environment_for(resource),
        )

    async def wait_until_healthy(self, resource: ProjectResource) -> None:
        """
        Poll the resource's health probe until it returns 200.

        Resources without a health check count as healthy once started.

        Raises:
            CompositionError: The process exited or the probe did not pass
                within STARTUP_TIMEOUT_SECONDS
        """
        if resource.health_check_path is None:
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.STARTUP_TIMEOUT_SECONDS
        url = self.url_for(resource) + resource.health_check_path

        async with httpx.AsyncClient(transport=self._transport, timeout=5.0) as client:
            while True:
                process = self.processes.get(resource.name)
                if process is not None and process.returncode is not None:
                    raise CompositionError(
                        f"Resource '{resource.name}' exited with code {process.returncode}",
                        code="RESOURCE_EXITED",
                        details={"resource": resource.name, "returncode": process.returncode},
                    )

                try:
                    response = await client.get(url)
                    if response.status_code == 200:
                        logger.info(f"{resource.name} is healthy")
                        return
                    logger.debug(f"{resource.name} health probe returned {response.status_code}")
                except httpx.TransportError as e:
                    logger.debug(f"{resource.name} health probe failed: {e}")

                if loop.time() >= deadline:
                    raise CompositionError(
                        f"Resource '{resource.name}' did not become healthy within "
                        f"{self.settings.STARTUP_TIMEOUT_SECONDS}s",
                        code="HEALTH_CHECK_TIMEOUT",
                        suggestion=f"Check that {url} returns 200 (probe routes exist only in development)",
                        details={"resource": resource.name, "url": url},
                    )

                await asyncio.sleep(self.settings.HEALTH_POLL_INTERVAL_SECONDS)

    async def _wait_for_exit(self) -> None:
        waiters = {
            asyncio.create_task(process.wait()): name
            for name, process in self.processes.items()
        }
        if not waiters:
            return
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                logger.warning(f"{waiters[task]} exited with code {task.result()}")
        finally:
            for task in waiters:
                task.cancel()

    async def stop(self) -> None:
        """Terminate child processes, newest first."""
        for name in reversed(list(self.processes)):
            process = self.processes.pop(name)
            if process.returncode is not None:
                continue
            logger.info(f"Stopping {name}")
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"{name} did not stop in {STOP_TIMEOUT}s, killing it")
                process.kill()
                await process.wait()
