"""OpenTelemetry setup and initialization.

Configures the OTLP metric exporter and meter provider based on
configuration settings.
"""

import logging

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from faultcore.core.config import settings

logger = logging.getLogger(__name__)

_instrumented = False


def setup_telemetry() -> None:
    """Initialize OpenTelemetry metrics export.

    Note:
        Only initializes if otel_enabled=True in configuration.
        Safe to call multiple times (idempotent).
    """
    global _instrumented

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled by configuration")
        return

    if _instrumented:
        logger.debug("OpenTelemetry already initialized")
        return

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "deployment.environment": settings.environment,
        }
    )

    if settings.otel_metrics_enabled:
        metric_exporter = OTLPMetricExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
        )

        metric_reader = PeriodicExportingMetricReader(
            metric_exporter,
            export_interval_millis=60000,  # Export every 60 seconds
        )

        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[metric_reader],
        )
        metrics.set_meter_provider(meter_provider)

        logger.info(
            f"OpenTelemetry metrics initialized: {settings.otel_exporter_otlp_endpoint}"
        )

    _instrumented = True


def shutdown_telemetry() -> None:
    """Flush pending metrics and shut the meter provider down."""
    if not settings.otel_enabled or not settings.otel_metrics_enabled:
        return

    meter_provider = metrics.get_meter_provider()
    if hasattr(meter_provider, "shutdown"):
        meter_provider.shutdown()
        logger.info("OpenTelemetry meter provider shutdown")
