"""OpenTelemetry metrics for the faultcore cache tiers.

Metrics:
    - faultcore.cache.hits: Counter of cache hits
    - faultcore.cache.misses: Counter of cache misses
    - faultcore.cache.errors: Counter of swallowed storage errors
    - faultcore.cache.evictions: Counter of entries removed by expiration

Every instrument carries a ``tier`` attribute (file, memory, blob).
"""

import logging
from typing import Any

from opentelemetry import metrics

from faultcore.core.config import settings

logger = logging.getLogger(__name__)

# Global meter instance
_meter: metrics.Meter | None = None

# Metric instruments (created on first access)
_cache_hits_counter: metrics.Counter | None = None
_cache_misses_counter: metrics.Counter | None = None
_cache_errors_counter: metrics.Counter | None = None
_cache_evictions_counter: metrics.Counter | None = None


def _metrics_enabled() -> bool:
    return settings.otel_enabled and settings.otel_metrics_enabled


def get_meter(name: str = "faultcore") -> metrics.Meter:
    """Get OpenTelemetry meter instance.

    Args:
        name: Meter name

    Returns:
        Meter instance (no-op if telemetry disabled)
    """
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(name)
    return _meter


def _ensure_instruments() -> None:
    """Lazy initialization of metric instruments."""
    global _cache_hits_counter
    global _cache_misses_counter
    global _cache_errors_counter
    global _cache_evictions_counter

    meter = get_meter()

    if _cache_hits_counter is None:
        _cache_hits_counter = meter.create_counter(
            name="faultcore.cache.hits",
            description="Number of cache hits",
            unit="1",
        )

    if _cache_misses_counter is None:
        _cache_misses_counter = meter.create_counter(
            name="faultcore.cache.misses",
            description="Number of cache misses",
            unit="1",
        )

    if _cache_errors_counter is None:
        _cache_errors_counter = meter.create_counter(
            name="faultcore.cache.errors",
            description="Number of cache storage errors",
            unit="1",
        )

    if _cache_evictions_counter is None:
        _cache_evictions_counter = meter.create_counter(
            name="faultcore.cache.evictions",
            description="Number of expired entries removed",
            unit="1",
        )


def record_cache_hit(tier: str) -> None:
    """Record cache hit metric."""
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _cache_hits_counter:
        _cache_hits_counter.add(1, {"tier": tier})


def record_cache_miss(tier: str) -> None:
    """Record cache miss metric."""
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _cache_misses_counter:
        _cache_misses_counter.add(1, {"tier": tier})


def record_cache_error(tier: str, operation: str) -> None:
    """Record a storage error that was logged and swallowed."""
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _cache_errors_counter:
        _cache_errors_counter.add(1, {"tier": tier, "operation": operation})


def record_cache_evictions(tier: str, count: int) -> None:
    """Record entries removed by an expiration sweep."""
    if not _metrics_enabled() or count <= 0:
        return

    _ensure_instruments()

    if _cache_evictions_counter:
        _cache_evictions_counter.add(count, {"tier": tier})


def get_metrics_summary() -> dict[str, Any]:
    """Get current metrics configuration for debugging.

    Note:
        This is for debugging only. Use OTLP backend for production metrics.
    """
    return {
        "otel_enabled": settings.otel_enabled,
        "metrics_enabled": settings.otel_metrics_enabled,
        "service_name": settings.otel_service_name,
        "exporter_endpoint": settings.otel_exporter_otlp_endpoint,
    }
