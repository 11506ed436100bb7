"""キャッシュアサイド方式のフラグ参照"""

from __future__ import annotations

import json

import structlog
from flagforge_cache import CacheClient
from flagforge_featureflag import FlagRecord
from flagforge_telemetry import (
    flag_cache_errors_total,
    flag_cache_hits_total,
    flag_cache_misses_total,
)
from opentelemetry import trace

from .repository import FlagRepository

logger = structlog.stdlib.get_logger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_KEY_PREFIX = "flag:"


class FlagStore:
    """評価エンジンにフラグ定義を供給するリードスルーストア。

    キャッシュは補助的な扱いで、読み書きのエラーはすべてミスとして扱う。
    正本は常に FlagRepository 側にある。
    """

    def __init__(
        self,
        repository: FlagRepository,
        cache: CacheClient | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    @property
    def repository(self) -> FlagRepository:
        return self._repository

    def cache_key(self, project_id: str, flag_key: str, environment: str) -> str:
        return f"{self._prefix}{project_id}:{environment}:{flag_key}"

    async def get_flag(
        self, project_id: str, flag_key: str, environment: str
    ) -> FlagRecord | None:
        """フラグを取得する。存在しなければ None。

        キャッシュヒット時はデシリアライズして返し、ミスまたはキャッシュ障害時は
        リポジトリを参照してキャッシュに書き戻す。
        """
        key = self.cache_key(project_id, flag_key, environment)
        with tracer.start_as_current_span(
            "flagforge.flagstore.get_flag", attributes={"flagforge.cache_key": key}
        ) as span:
            cached = await self._read_cache(key)
            span.set_attribute("flagforge.cache_hit", cached is not None)
            if cached is not None:
                flag_cache_hits_total.add(1)
                return cached

            flag_cache_misses_total.add(1)
            flag = await self._repository.find_flag(project_id, flag_key, environment)
            if flag is not None:
                await self._write_cache(key, flag)
            return flag

    async def invalidate(self, project_id: str, flag_key: str, environment: str) -> None:
        """キャッシュエントリを削除する。存在しないキーでもエラーにしない。"""
        if self._cache is None:
            return
        key = self.cache_key(project_id, flag_key, environment)
        try:
            await self._cache.delete(key)
        except Exception as e:
            flag_cache_errors_total.add(1, {"op": "delete"})
            logger.error("cache_invalidation_failed", key=key, error=str(e))

    async def warm_cache(self, project_id: str, environment: str | None = None) -> int:
        """プロジェクトの全フラグをキャッシュに投入し、書き込めた件数を返す。"""
        if self._cache is None:
            return 0
        flags = await self._repository.list_flags(project_id, environment)
        warmed = 0
        for flag in flags:
            key = self.cache_key(project_id, flag.key, flag.environment)
            if await self._write_cache(key, flag):
                warmed += 1
        logger.info(
            "cache_warmed", project_id=project_id, flags=len(flags), warmed=warmed
        )
        return warmed

    async def _read_cache(self, key: str) -> FlagRecord | None:
        if self._cache is None:
            return None
        try:
            raw = await self._cache.get(key)
        except Exception as e:
            flag_cache_errors_total.add(1, {"op": "get"})
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected object, got {type(data).__name__}")
            return FlagRecord.from_dict(data)
        except (TypeError, ValueError) as e:
            flag_cache_errors_total.add(1, {"op": "decode"})
            logger.warning("cache_entry_corrupt", key=key, error=str(e))
            return None

    async def _write_cache(self, key: str, flag: FlagRecord) -> bool:
        if self._cache is None:
            return False
        try:
            await self._cache.set(key, json.dumps(flag.to_dict()), ttl=self._ttl)
        except Exception as e:
            flag_cache_errors_total.add(1, {"op": "set"})
            logger.error("cache_write_failed", key=key, error=str(e))
            return False
        return True
