"""FeatureFlagClient プロトコル"""

from __future__ import annotations

from typing import Any, Protocol

from .models import EvaluationResult, FlagRecord


class FeatureFlagClientProtocol(Protocol):
    """フィーチャーフラグクライアントプロトコル。

    評価はメモリ上のフラグ定義のみを参照し、ネットワーク I/O で
    ブロックしない。
    """

    def evaluate(
        self, flag_key: str, user_id: str, default: Any = None
    ) -> EvaluationResult: ...

    def get_flag(self, flag_key: str) -> FlagRecord | None: ...

    def is_enabled(self, flag_key: str, user_id: str) -> bool: ...

    def get_variant(self, flag_key: str, user_id: str, default: Any = None) -> Any: ...
