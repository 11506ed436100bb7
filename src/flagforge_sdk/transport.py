"""FlagTransport 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod

from flagforge_featureflag import FlagRecord

from .models import EvaluationEvent


class FlagTransport(ABC):
    """フラグ一括取得とイベント送信の通信路。"""

    @abstractmethod
    async def fetch_flags(self, environment: str) -> list[FlagRecord]:
        """環境のフラグ一覧を取得する。失敗時は SdkError。"""
        ...

    @abstractmethod
    async def send_event(self, event: EvaluationEvent) -> None:
        """評価イベントを送信する。失敗時は SdkError。"""
        ...

    async def aclose(self) -> None:
        """保持している接続を解放する。"""
        return None
