"""SDK 設定とイベントモデル"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flagforge_featureflag import DEFAULT_ENVIRONMENT

from .exceptions import SdkError, SdkErrorCodes


@dataclass
class SdkConfig:
    """SDK クライアント設定。"""

    api_key: str
    api_url: str = "http://localhost:4000"
    refresh_interval_seconds: float = 60.0
    environment: str = DEFAULT_ENVIRONMENT
    timeout_seconds: float = 10.0
    track_events: bool = True
    max_pending_events: int = 100

    def __post_init__(self) -> None:
        if not self.api_key:
            raise SdkError(SdkErrorCodes.CONFIG_ERROR, "api_key is required")
        if self.max_pending_events < 0:
            raise SdkError(
                SdkErrorCodes.CONFIG_ERROR, "max_pending_events must not be negative"
            )


@dataclass
class EvaluationEvent:
    """イベント受信エンドポイントへ送る評価イベント。"""

    flag_key: str
    result: bool
    user_id: str
    environment: str = DEFAULT_ENVIRONMENT
    latency: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "flagKey": self.flag_key,
            "result": self.result,
            "userId": self.user_id,
            "environment": self.environment,
        }
        if self.latency is not None:
            data["latency"] = self.latency
        return data
