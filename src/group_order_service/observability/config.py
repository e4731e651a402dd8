"""OpenTelemetry and logging setup for the group order service."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

SERVICE_NAME = "group-order-svc"

DEFAULT_OTLP_ENDPOINT = "http://localhost:4318"
DEFAULT_METRIC_EXPORT_INTERVAL_MS = 60000

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def get_service_resource() -> Resource:
    """Create OpenTelemetry resource with service identification.

    Returns:
        Resource with service name and environment attributes
    """
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", SERVICE_NAME),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def otlp_endpoint(signal: str) -> str:
    """Build the OTLP HTTP endpoint for a signal ("traces" or "metrics")."""
    base = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT).rstrip("/")
    return f"{base}/v1/{signal}"


def build_tracer_provider(resource: Resource, export: bool) -> TracerProvider:
    """Create a tracer provider, exporting spans over OTLP when ``export`` is set."""
    provider = TracerProvider(resource=resource)
    if export:
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint("traces"))
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def build_meter_provider(resource: Resource, export: bool) -> MeterProvider:
    """Create a meter provider, exporting metrics over OTLP when ``export`` is set.

    The export interval is read from OTEL_METRIC_EXPORT_INTERVAL in milliseconds.
    """
    if not export:
        return MeterProvider(resource=resource)

    interval_ms = int(
        os.getenv("OTEL_METRIC_EXPORT_INTERVAL", str(DEFAULT_METRIC_EXPORT_INTERVAL_MS))
    )
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_endpoint("metrics")),
        export_interval_millis=interval_ms,
    )
    return MeterProvider(resource=resource, metric_readers=[reader])


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize tracing, metrics and auto-instrumentation.

    Exporters are always off when ENVIRONMENT=test; spans and metrics are
    then still recorded in process.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Whether to ship telemetry to the OTLP collector
    """
    export = enable_exporters and os.getenv("ENVIRONMENT", "development") != "test"
    resource = get_service_resource()

    trace.set_tracer_provider(build_tracer_provider(resource, export))
    metrics.set_meter_provider(build_meter_provider(resource, export))
    if export:
        logger.info(f"OpenTelemetry exporters configured at {otlp_endpoint('traces')}")

    # Remote store calls go through httpx
    HTTPXClientInstrumentor().instrument()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI application instrumented")

    logger.info("OpenTelemetry observability fully configured")


def configure_logging(log_level: str = "INFO") -> None:
    """Send JSON log records tagged with the service name to stderr.

    Args:
        log_level: Logging level used when LOG_LEVEL is not set
    """
    level_str = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_str, logging.INFO)

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        timestamp=True,
        static_fields={"service": SERVICE_NAME},
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Structured JSON logging configured at {level_str} level")
