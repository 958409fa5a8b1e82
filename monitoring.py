"""Monitoring and observability setup.

Tracing and metrics are exported over OTLP when ``TELEMETRY_ENABLED`` is set.
Otherwise the OpenTelemetry API keeps its no-op providers, so the counters and
spans below stay callable in tests and local runs without a collector.
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from config import (
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PROFILING_ENABLED,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
    TELEMETRY_ENABLED,
)

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    if TELEMETRY_ENABLED:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        resource = Resource.create({"service.name": SERVICE_NAME})

        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    if TELEMETRY_ENABLED:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        resource = Resource.create({"service.name": SERVICE_NAME})

        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        otlp_metric_reader = PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        )

        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[otlp_metric_reader]
        )
        metrics.set_meter_provider(meter_provider)

        logger.info("Metrics initialized with OTLP exporter")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling (requires the ``profiling`` extra)."""
    if not PROFILING_ENABLED:
        return
    try:
        import pyroscope

        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": "demo"}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Business metrics using OpenTelemetry

# Catalog metrics
product_views_counter = meter.create_counter(
    "quickshop.products.views",
    description="Total number of product catalog and detail views",
    unit="1"
)

products_created_counter = meter.create_counter(
    "quickshop.products.created",
    description="Total number of products added by sellers",
    unit="1"
)

# Order workflow metrics
orders_placed_counter = meter.create_counter(
    "quickshop.orders.placed",
    description="Total number of order rows created at checkout",
    unit="1"
)

order_quantity_histogram = meter.create_histogram(
    "quickshop.orders.quantity",
    description="Units purchased per order row",
    unit="1"
)

checkout_failures_counter = meter.create_counter(
    "quickshop.checkout.failures",
    description="Checkouts rejected before any stock was changed",
    unit="1"
)

insufficient_stock_counter = meter.create_counter(
    "quickshop.checkout.insufficient_stock",
    description="Checkout lines rejected for insufficient stock",
    unit="1"
)

status_transitions_counter = meter.create_counter(
    "quickshop.orders.status_transitions",
    description="Order status changes by previous and new status",
    unit="1"
)

receipts_acknowledged_counter = meter.create_counter(
    "quickshop.orders.receipts_acknowledged",
    description="Orders marked as received by customers",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "quickshop.auth.failures",
    description="Total number of actor resolution failures",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "quickshop.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "quickshop.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
