"""InMemoryFeatureFlagClient 実装"""

from __future__ import annotations

from typing import Any

from .evaluator import evaluate, not_found
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .models import EvaluationResult, FlagRecord


class InMemoryFeatureFlagClient:
    """テスト用インメモリフィーチャーフラグクライアント。

    SDK と同じ評価エンジンを使うため、アプリケーションのテストで
    FlagSyncClient の代わりに差し込める。
    """

    def __init__(self, flags: list[FlagRecord] | None = None) -> None:
        self._flags: dict[str, FlagRecord] = {}
        for flag in flags or []:
            self.set_flag(flag)

    def set_flag(self, flag: FlagRecord) -> None:
        """フラグを設定する。"""
        if not flag.key:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.INVALID_FLAG, "フラグキーが空です"
            )
        self._flags[flag.key] = flag

    def remove_flag(self, flag_key: str) -> bool:
        """フラグを削除する。削除できたら True。"""
        return self._flags.pop(flag_key, None) is not None

    def evaluate(
        self, flag_key: str, user_id: str, default: Any = None
    ) -> EvaluationResult:
        flag = self._flags.get(flag_key)
        if flag is None:
            return not_found(default)
        return evaluate(flag, user_id, default)

    def get_flag(self, flag_key: str) -> FlagRecord | None:
        return self._flags.get(flag_key)

    def is_enabled(self, flag_key: str, user_id: str) -> bool:
        return self.evaluate(flag_key, user_id).enabled

    def get_variant(self, flag_key: str, user_id: str, default: Any = None) -> Any:
        result = self.evaluate(flag_key, user_id, default)
        if result.value is None:
            return default
        return result.value
