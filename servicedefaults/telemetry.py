# =============================================================================
# servicedefaults/telemetry.py - Logging, Tracing and Metrics
# =============================================================================
# Builds the OpenTelemetry providers for a service and instruments:
# - inbound requests (FastAPI), excluding the health probe paths
# - outbound calls (httpx clients created through the ServiceContext)
# - runtime statistics (system metrics)
#
# OTLP export is enabled only when OTEL_EXPORTER_OTLP_ENDPOINT is set.
# Without it the providers still run but nothing leaves the process.
# =============================================================================

import logging
import re
from dataclasses import dataclass

import httpx
from fastapi import FastAPI
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.system_metrics import SystemMetricsInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from servicedefaults.config import ServiceSettings
from servicedefaults.health import ALIVENESS_ENDPOINT_PATH, HEALTH_ENDPOINT_PATH

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Requests to these paths (or below them) are not traced
PROBE_PATHS = (HEALTH_ENDPOINT_PATH, ALIVENESS_ENDPOINT_PATH)


def configure_logging(settings: ServiceSettings) -> None:
    """Console logging for the process (no-op if the root logger is already set up)."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format=LOG_FORMAT,
    )


def is_probe_path(path: str) -> bool:
    """True for /health, /alive and their sub-paths, but not /healthz."""
    return any(path == probe or path.startswith(probe + "/") for probe in PROBE_PATHS)


def probe_paths_excluded_urls() -> str:
    """
    Exclusion list for the FastAPI instrumentation.

    The instrumentation searches each comma-separated regex in the full
    request URL, so every pattern is anchored to the start of the path and
    to a path segment boundary.
    """
    return ",".join(rf"^https?://[^/]+{re.escape(path)}(?:/|\?|$)" for path in PROBE_PATHS)


def _otlp_url(endpoint: str, signal: str) -> str:
    return f"{endpoint.rstrip('/')}/v1/{signal}"


@dataclass
class Telemetry:
    """OpenTelemetry providers owned by one service."""
    service_name: str
    tracer_provider: TracerProvider
    meter_provider: MeterProvider
    logger_provider: LoggerProvider
    exporting: bool = False
    log_handler: LoggingHandler | None = None
    owns_runtime_metrics: bool = False

    def instrument_app(self, app: FastAPI) -> None:
        FastAPIInstrumentor.instrument_app(
            app,
            tracer_provider=self.tracer_provider,
            meter_provider=self.meter_provider,
            excluded_urls=probe_paths_excluded_urls(),
        )

    def instrument_client(self, client: httpx.AsyncClient) -> None:
        HTTPXClientInstrumentor().instrument_client(client, tracer_provider=self.tracer_provider)

    def shutdown(self) -> None:
        """Flush exporters and detach from logging and runtime metrics."""
        if self.log_handler is not None:
            logging.getLogger().removeHandler(self.log_handler)
            self.log_handler = None
        if self.owns_runtime_metrics:
            SystemMetricsInstrumentor().uninstrument()
            self.owns_runtime_metrics = False
        self.tracer_provider.shutdown()
        self.meter_provider.shutdown()
        self.logger_provider.shutdown()


def build_telemetry(service_name: str, settings: ServiceSettings) -> Telemetry:
    """
    Create providers for a service and attach OTLP exporters when configured.

    Args:
        service_name: Default service name (OTEL_SERVICE_NAME wins if set)
        settings: Service settings

    Returns:
        Telemetry with tracing, metrics and log providers
    """
    name = settings.OTEL_SERVICE_NAME or service_name
    resource = Resource.create({SERVICE_NAME: name})
    endpoint = settings.otlp_endpoint

    metric_readers: list[MetricReader] = []
    if endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=_otlp_url(endpoint, "metrics")))
        )

    telemetry = Telemetry(
        service_name=name,
        tracer_provider=TracerProvider(resource=resource),
        meter_provider=MeterProvider(resource=resource, metric_readers=metric_readers),
        logger_provider=LoggerProvider(resource=resource),
    )

    if endpoint:
        _add_otlp_exporters(telemetry, endpoint)

    runtime_metrics = SystemMetricsInstrumentor()
    if not runtime_metrics.is_instrumented_by_opentelemetry:
        runtime_metrics.instrument(meter_provider=telemetry.meter_provider)
        telemetry.owns_runtime_metrics = True

    return telemetry


def _add_otlp_exporters(telemetry: Telemetry, endpoint: str) -> None:
    logger.info(f"Exporting telemetry for {telemetry.service_name} to {endpoint}")

    telemetry.tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_otlp_url(endpoint, "traces")))
    )
    telemetry.logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=_otlp_url(endpoint, "logs")))
    )

    # Formatted message becomes the log body, `extra` fields become attributes
    telemetry.log_handler = LoggingHandler(level=logging.NOTSET, logger_provider=telemetry.logger_provider)
    logging.getLogger().addHandler(telemetry.log_handler)
    telemetry.exporting = True
