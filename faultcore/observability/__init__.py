"""Observability for faultcore: structured logging, metrics and publishers.

Metrics are exported through OpenTelemetry to any OTLP-compatible backend
(Prometheus, Grafana, Datadog, ...).

Instrumented Components:
    - Cache hits, misses and swallowed errors per tier
    - Entries removed by the file-cache expiration sweep
"""

from faultcore.observability.logging import (
    LogEvents,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from faultcore.observability.metrics import (
    get_meter,
    get_metrics_summary,
    record_cache_error,
    record_cache_evictions,
    record_cache_hit,
    record_cache_miss,
)
from faultcore.observability.publishers import (
    ConsolePublisher,
    LogEvent,
    Publisher,
    PublisherHandler,
)
from faultcore.observability.setup import setup_telemetry, shutdown_telemetry

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LogEvents",
    "setup_telemetry",
    "shutdown_telemetry",
    "get_meter",
    "get_metrics_summary",
    "record_cache_hit",
    "record_cache_miss",
    "record_cache_error",
    "record_cache_evictions",
    "ConsolePublisher",
    "LogEvent",
    "Publisher",
    "PublisherHandler",
]
