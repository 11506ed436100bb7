"""ロガーと OpenTelemetry トレーサー・メータープロバイダーの初期化"""

from __future__ import annotations

import structlog
from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from .exceptions import TelemetryError, TelemetryErrorCodes
from .logger import new_logger
from .models import TelemetryConfig


def _resource(config: TelemetryConfig) -> Resource:
    return Resource.create(
        {
            "service.name": config.service_name,
            "service.version": config.service_version,
        }
    )


def _build_tracer_provider(config: TelemetryConfig) -> TracerProvider:
    provider = TracerProvider(
        resource=_resource(config), sampler=TraceIdRatioBased(config.trace.sample_rate)
    )
    if config.trace.endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            from opentelemetry.sdk.trace.export import BatchSpanProcessor

            exporter = OTLPSpanExporter(endpoint=config.trace.endpoint)
            provider.add_span_processor(BatchSpanProcessor(exporter))
        except Exception as e:
            raise TelemetryError(
                code=TelemetryErrorCodes.EXPORTER_INIT_ERROR,
                message=f"Failed to initialize OTLP span exporter: {e}",
                cause=e,
            ) from e
    return provider


def build_meter_provider(
    config: TelemetryConfig, *readers: MetricReader
) -> MeterProvider:
    """メータープロバイダーを生成する。

    metrics.endpoint が設定されていれば OTLP へ定期送信するリーダーを追加する。

    Args:
        config: テレメトリー設定
        readers: 追加で登録するメトリクスリーダー

    Raises:
        TelemetryError: エクスポーターの初期化に失敗した場合
    """
    metric_readers = list(readers)
    if config.metrics.endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

            exporter = OTLPMetricExporter(endpoint=config.metrics.endpoint)
            metric_readers.append(
                PeriodicExportingMetricReader(
                    exporter, export_interval_millis=config.metrics.export_interval_ms
                )
            )
        except Exception as e:
            raise TelemetryError(
                code=TelemetryErrorCodes.EXPORTER_INIT_ERROR,
                message=f"Failed to initialize OTLP metric exporter: {e}",
                cause=e,
            ) from e
    return MeterProvider(resource=_resource(config), metric_readers=metric_readers)


def init_telemetry(config: TelemetryConfig) -> structlog.stdlib.BoundLogger:
    """ログ設定とトレーサー・メータープロバイダーをまとめて初期化する。

    Args:
        config: テレメトリー設定

    Returns:
        service 名を束縛したロガー

    Raises:
        TelemetryError: 初期化に失敗した場合
    """
    logger = new_logger(
        level=config.log.level,
        format=config.log.format,
        service_name=config.service_name,
    )
    try:
        if config.trace.enabled:
            trace.set_tracer_provider(_build_tracer_provider(config))
        if config.metrics.enabled:
            metrics.set_meter_provider(build_meter_provider(config))
    except TelemetryError:
        raise
    except Exception as e:
        raise TelemetryError(
            code=TelemetryErrorCodes.INITIALIZATION_ERROR,
            message=f"Failed to initialize telemetry: {e}",
            cause=e,
        ) from e
    if config.trace.enabled:
        logger.info("tracing_enabled", endpoint=config.trace.endpoint or None)
    if config.metrics.enabled:
        logger.info("metrics_enabled", endpoint=config.metrics.endpoint or None)
    return logger
