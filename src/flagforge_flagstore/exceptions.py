"""flagstore ライブラリの例外型定義"""

from __future__ import annotations


class FlagStoreError(Exception):
    """flagstore ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FlagStoreErrorCodes:
    """FlagStoreError のエラーコード定数。"""

    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    DUPLICATE_FLAG: str = "DUPLICATE_FLAG"
    INVALID_KEY: str = "INVALID_KEY"
    INVALID_ROLLOUT: str = "INVALID_ROLLOUT"
    INVALID_ENVIRONMENT: str = "INVALID_ENVIRONMENT"
    INVALID_VARIANT: str = "INVALID_VARIANT"
    INVALID_FIELD: str = "INVALID_FIELD"
