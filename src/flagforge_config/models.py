"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class AppSection(BaseModel):
    """アプリケーション基本設定。"""

    name: str = "flagforge-server"
    version: str = "0.1.0"
    environment: str = "development"


class ServerSection(BaseModel):
    """HTTP サーバー設定。"""

    host: str = "0.0.0.0"
    port: int = Field(default=4000, ge=1, le=65535)
    default_environment: Literal["Development", "Staging", "Production"] = "Production"


class RedisSection(BaseModel):
    """Redis 接続設定。url が空ならキャッシュはインメモリになる。"""

    url: str = ""
    socket_timeout: float = Field(default=1.0, gt=0)


class CacheSection(BaseModel):
    """フラグキャッシュ設定。"""

    ttl_seconds: int = Field(default=300, ge=1)
    key_prefix: str = "flag:"


class EventsSection(BaseModel):
    """評価イベント記録設定。"""

    queue_size: int = Field(default=1000, ge=1)
    workers: int = Field(default=1, ge=1, le=16)
    # プロジェクトごとに集計用に保持する最大件数
    max_retained: int = Field(default=10_000, ge=1)


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class TraceSection(BaseModel):
    """分散トレーシング設定。"""

    enabled: bool = False
    endpoint: str = ""
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class MetricsSection(BaseModel):
    """メトリクス送信設定。endpoint が空ならプロバイダーのみ設定する。"""

    enabled: bool = False
    endpoint: str = ""
    export_interval_ms: int = Field(default=60_000, ge=1000)


class ObservabilitySection(BaseModel):
    """可観測性設定。"""

    log: LogSection = Field(default_factory=LogSection)
    trace: TraceSection = Field(default_factory=TraceSection)
    metrics: MetricsSection = Field(default_factory=MetricsSection)


class AppConfig(BaseModel):
    """アプリケーション設定全体。"""

    app: AppSection = Field(default_factory=AppSection)
    server: ServerSection = Field(default_factory=ServerSection)
    redis: RedisSection = Field(default_factory=RedisSection)
    cache: CacheSection = Field(default_factory=CacheSection)
    events: EventsSection = Field(default_factory=EventsSection)
    observability: ObservabilitySection = Field(default_factory=ObservabilitySection)
