"""OpenTelemetry and structured logging setup for the service process."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from pythonjsonlogger import jsonlogger

from food_delivery_service.observability.context import RequestIdFilter

logger = logging.getLogger(__name__)

# Health checks are not traced
EXCLUDED_URLS = "health,health/ready"


def _otlp_endpoint() -> str:
    return os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")


def get_service_resource() -> Resource:
    """Create the resource identifying this service in traces and metrics."""
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "food-delivery-svc"),
            "service.version": os.getenv("SERVICE_VERSION", "1.0.0"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def setup_tracing(resource: Resource) -> None:
    """Export spans over OTLP/HTTP, sampling root traces by OTEL_TRACES_SAMPLER_RATIO."""
    ratio = float(os.getenv("OTEL_TRACES_SAMPLER_RATIO", "1.0"))
    provider = TracerProvider(resource=resource, sampler=ParentBased(TraceIdRatioBased(ratio)))
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{_otlp_endpoint()}/v1/traces"))
    )
    trace.set_tracer_provider(provider)

    logger.info(f"Tracing exports to {_otlp_endpoint()} with sample ratio {ratio}")


def setup_metrics(resource: Resource) -> None:
    """Export metrics over OTLP/HTTP every OTEL_METRIC_EXPORT_INTERVAL milliseconds."""
    interval = int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000"))
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{_otlp_endpoint()}/v1/metrics"),
        export_interval_millis=interval,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    logger.info(f"Metrics export to {_otlp_endpoint()} every {interval} ms")


def setup_auto_instrumentation() -> None:
    """Instrument outbound calls: httpx for the mapping provider, botocore for DynamoDB."""
    for instrumentor in (HTTPXClientInstrumentor(), BotocoreInstrumentor()):
        if not instrumentor.is_instrumented_by_opentelemetry:
            instrumentor.instrument()


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize tracing, metrics and auto-instrumentation.

    In the test environment no exporters are installed; spans and metric
    instruments still work against in-process providers.

    Args:
        app: FastAPI application whose inbound requests should be traced
        enable_exporters: Whether to ship telemetry over OTLP
    """
    if os.getenv("ENVIRONMENT", "development") == "test":
        enable_exporters = False

    resource = get_service_resource()

    if enable_exporters:
        setup_tracing(resource)
        setup_metrics(resource)
    else:
        trace.set_tracer_provider(TracerProvider(resource=resource))
        metrics.set_meter_provider(MeterProvider(resource=resource))

    setup_auto_instrumentation()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=EXCLUDED_URLS)

    logger.info("Observability configured")


def configure_logging(log_level: str = "INFO") -> None:
    """Send JSON log lines to stderr, tagged with the current request id.

    LOG_LEVEL in the environment overrides ``log_level``.
    """
    level_name = (os.getenv("LOG_LEVEL") or log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            timestamp=True,
        )
    )
    handler.addFilter(RequestIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # botocore logs at WARNING or above
    logging.getLogger("botocore").setLevel(max(level, logging.WARNING))

    logger.info(f"Structured JSON logging configured at {level_name} level")
