"""リクエストスキーマ"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EvaluateRequest(BaseModel):
    """評価リクエスト。欠落項目はハンドラー側で 400 として扱う。"""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")
    flag_key: str | None = Field(default=None, alias="flagKey")
    user_id: str | None = Field(default=None, alias="userId")
    environment: str | None = None
    default: Any = None
    # 予約済み。現在の評価では参照しない
    context: dict[str, Any] = Field(default_factory=dict)


class EventRequest(BaseModel):
    """SDK からの評価イベント。"""

    model_config = ConfigDict(populate_by_name=True)

    flag_key: str = Field(alias="flagKey", min_length=1)
    result: bool = True
    user_id: str | None = Field(default=None, alias="userId")
    environment: str | None = None
    latency: float | None = Field(default=None, ge=0)
