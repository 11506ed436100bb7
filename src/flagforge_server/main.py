"""サーバーの組み立てとエントリポイント"""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from flagforge_cache import CacheClient, InMemoryCacheClient, RedisCacheClient
from flagforge_config import AppConfig, load, merge_overrides, overrides_from_env
from flagforge_flagstore import FlagRepository, FlagStore, ProjectRepository
from flagforge_telemetry import (
    LogConfig,
    MetricsConfig,
    TelemetryConfig,
    TraceConfig,
    init_telemetry,
)

from .analytics import AnalyticsEventSink
from .app import create_app
from .events import EventRecorder, EventSink
from .seed import in_memory_repositories, load_seed


def build_cache(config: AppConfig) -> CacheClient:
    """redis.url が設定されていれば Redis、なければプロセス内キャッシュ。"""
    if config.redis.url:
        return RedisCacheClient.from_url(
            config.redis.url, socket_timeout=config.redis.socket_timeout
        )
    return InMemoryCacheClient()


def build_app(
    config: AppConfig,
    projects: ProjectRepository,
    flags: FlagRepository,
    sink: EventSink | None = None,
    cache: CacheClient | None = None,
) -> FastAPI:
    """設定とリポジトリからアプリを組み立てる。

    sink 未指定時はプロジェクト単位で件数上限付きの集計シンクを使う。
    """
    cache = cache if cache is not None else build_cache(config)
    store = FlagStore(
        flags,
        cache,
        ttl_seconds=config.cache.ttl_seconds,
        key_prefix=config.cache.key_prefix,
    )
    if sink is None:
        sink = AnalyticsEventSink(max_events=config.events.max_retained)
    recorder = EventRecorder(
        sink,
        queue_size=config.events.queue_size,
        workers=config.events.workers,
    )
    return create_app(
        projects,
        store,
        recorder,
        cache=cache,
        default_environment=config.server.default_environment,
        analytics=sink if isinstance(sink, AnalyticsEventSink) else None,
    )


def init_logging(config: AppConfig) -> None:
    obs = config.observability
    init_telemetry(
        TelemetryConfig(
            service_name=config.app.name,
            service_version=config.app.version,
            log=LogConfig(level=obs.log.level, format=obs.log.format),
            trace=TraceConfig(
                enabled=obs.trace.enabled,
                endpoint=obs.trace.endpoint,
                sample_rate=obs.trace.sample_rate,
            ),
            metrics=MetricsConfig(
                enabled=obs.metrics.enabled,
                endpoint=obs.metrics.endpoint,
                export_interval_ms=obs.metrics.export_interval_ms,
            ),
        )
    )


def load_config(config_path: Path | None, env_path: Path | None = None) -> AppConfig:
    """設定ファイル (任意) を読み込み、FLAGFORGE_* 環境変数で上書きする。"""
    config = load(config_path, env_path) if config_path is not None else AppConfig()
    return merge_overrides(config, overrides_from_env(os.environ))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="flagforge-server")
    parser.add_argument("--config", type=Path, default=None, help="base config YAML")
    parser.add_argument("--env-config", type=Path, default=None, help="overlay YAML")
    parser.add_argument("--seed", type=Path, default=None, help="projects/flags YAML")
    args = parser.parse_args(argv)

    config = load_config(args.config, args.env_config)
    init_logging(config)

    projects, flags = in_memory_repositories()
    if args.seed is not None:
        # 起動前なのでキャッシュは空。シードはリポジトリへ直接書き込む
        asyncio.run(load_seed(args.seed, FlagStore(flags), projects))
    app = build_app(config, projects, flags)

    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
