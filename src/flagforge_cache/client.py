"""CacheClient 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CacheClient(ABC):
    """キャッシュクライアント抽象基底クラス。

    実装は接続障害を CacheError(CONNECTION_ERROR) として送出する。
    キャッシュは常に補助的な扱いで、呼び出し側はエラーをミスとみなす。
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """キーに対応する値を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        """キーと値を保存する。ttl 指定時は有効期限付き（秒）。"""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """キーを削除する。削除できたら True。存在しないキーはエラーにしない。"""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """キーが存在するか確認する。"""
        ...

    async def close(self) -> None:
        """接続を解放する。"""
        return None
