"""Redis を使った CacheClient 実装"""

from __future__ import annotations

import math

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .client import CacheClient
from .exceptions import CacheError, CacheErrorCodes


class RedisCacheClient(CacheClient):
    """redis.asyncio ベースのキャッシュクライアント。"""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 1.0) -> RedisCacheClient:
        """URL から接続を生成する。接続は最初のコマンド実行時に確立される。"""
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            retry_on_timeout=True,
        )
        return cls(client)

    def _wrap(self, op: str, key: str, e: Exception) -> CacheError:
        return CacheError(
            code=CacheErrorCodes.CONNECTION_ERROR,
            message=f"redis {op} failed for {key}: {e}",
            cause=e,
        )

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise self._wrap("get", key, e) from e
        return value

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        try:
            if ttl is None:
                await self._client.set(key, value)
            else:
                # SETEX は整数秒のみ
                await self._client.setex(key, max(math.ceil(ttl), 1), value)
        except (RedisError, OSError) as e:
            raise self._wrap("set", key, e) from e

    async def delete(self, key: str) -> bool:
        try:
            removed = await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise self._wrap("delete", key, e) from e
        return bool(removed)

    async def exists(self, key: str) -> bool:
        try:
            count = await self._client.exists(key)
        except (RedisError, OSError) as e:
            raise self._wrap("exists", key, e) from e
        return bool(count)

    async def close(self) -> None:
        await self._client.aclose()
