"""flagforge telemetry library."""

from .exceptions import TelemetryError, TelemetryErrorCodes
from .initializer import build_meter_provider, init_telemetry
from .logger import new_logger
from .metrics import (
    analytics_events_dropped_total,
    evaluation_latency_seconds,
    flag_cache_errors_total,
    flag_cache_hits_total,
    flag_cache_misses_total,
    flag_evaluations_total,
    sdk_refresh_failures_total,
)
from .models import LogConfig, MetricsConfig, TelemetryConfig, TraceConfig

__all__ = [
    "TelemetryConfig",
    "LogConfig",
    "TraceConfig",
    "MetricsConfig",
    "build_meter_provider",
    "init_telemetry",
    "new_logger",
    "flag_evaluations_total",
    "flag_cache_hits_total",
    "flag_cache_misses_total",
    "flag_cache_errors_total",
    "sdk_refresh_failures_total",
    "analytics_events_dropped_total",
    "evaluation_latency_seconds",
    "TelemetryError",
    "TelemetryErrorCodes",
]
