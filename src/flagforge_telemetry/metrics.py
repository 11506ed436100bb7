"""OpenTelemetry メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("flagforge", version="0.1.0")

flag_evaluations_total = _meter.create_counter(
    name="flag_evaluations_total",
    description="Total number of flag evaluations",
    unit="1",
)

flag_cache_hits_total = _meter.create_counter(
    name="flag_cache_hits_total",
    description="Flag lookups served from cache",
    unit="1",
)

flag_cache_misses_total = _meter.create_counter(
    name="flag_cache_misses_total",
    description="Flag lookups that fell through to the backing store",
    unit="1",
)

flag_cache_errors_total = _meter.create_counter(
    name="flag_cache_errors_total",
    description="Cache read, write and invalidation failures",
    unit="1",
)

sdk_refresh_failures_total = _meter.create_counter(
    name="sdk_refresh_failures_total",
    description="Failed SDK flag set refreshes",
    unit="1",
)

analytics_events_dropped_total = _meter.create_counter(
    name="analytics_events_dropped_total",
    description="Analytics events dropped on overflow or failure",
    unit="1",
)

evaluation_latency_seconds = _meter.create_histogram(
    name="evaluation_latency_seconds",
    description="Server-side flag lookup and evaluation latency",
    unit="s",
)
