"""フラグ書き込みパス。変更のたびにキャッシュを無効化する。"""

from __future__ import annotations

import dataclasses
import re
from typing import Any

import structlog
from flagforge_featureflag import FlagRecord, is_valid_percentage

from .exceptions import FlagStoreError, FlagStoreErrorCodes
from .models import ENVIRONMENTS
from .store import FlagStore

logger = structlog.stdlib.get_logger(__name__)

FLAG_KEY_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_UPDATABLE_FIELDS = frozenset(f.name for f in dataclasses.fields(FlagRecord))


def validate_flag(flag: FlagRecord) -> None:
    """管理 API と同じ入力検証。違反時は FlagStoreError を送出する。"""
    if not FLAG_KEY_PATTERN.match(flag.key):
        raise FlagStoreError(
            FlagStoreErrorCodes.INVALID_KEY,
            f"flag key must be a lowercase slug: {flag.key!r}",
        )
    if not is_valid_percentage(flag.rollout_percentage):
        raise FlagStoreError(
            FlagStoreErrorCodes.INVALID_ROLLOUT,
            f"rolloutPercentage must be between 0 and 100: {flag.rollout_percentage}",
        )
    if flag.environment not in ENVIRONMENTS:
        raise FlagStoreError(
            FlagStoreErrorCodes.INVALID_ENVIRONMENT,
            f"invalid environment: {flag.environment!r}",
        )
    seen: set[str] = set()
    for variant in flag.variants:
        if not variant.id or variant.id in seen:
            raise FlagStoreError(
                FlagStoreErrorCodes.INVALID_VARIANT,
                f"variant ids must be unique and non-empty: {variant.id!r}",
            )
        if not is_valid_percentage(variant.weight):
            raise FlagStoreError(
                FlagStoreErrorCodes.INVALID_VARIANT,
                f"variant weight must be between 0 and 100: {variant.weight}",
            )
        seen.add(variant.id)


class FlagService:
    """フラグの作成・更新・削除・環境間プロモーション。

    リポジトリへの書き込みが完了した後、呼び出し元へ返る前に対応する
    キャッシュエントリを無効化する。
    """

    def __init__(self, store: FlagStore) -> None:
        self._store = store
        self._repository = store.repository

    async def _require(
        self, project_id: str, flag_key: str, environment: str
    ) -> FlagRecord:
        flag = await self._repository.find_flag(project_id, flag_key, environment)
        if flag is None:
            raise FlagStoreError(
                FlagStoreErrorCodes.FLAG_NOT_FOUND,
                f"flag not found: {flag_key} ({environment})",
            )
        return flag

    async def create_flag(self, project_id: str, flag: FlagRecord) -> FlagRecord:
        """フラグを作成する。同じ (key, environment) が既にあればエラー。"""
        validate_flag(flag)
        existing = await self._repository.find_flag(
            project_id, flag.key, flag.environment
        )
        if existing is not None:
            raise FlagStoreError(
                FlagStoreErrorCodes.DUPLICATE_FLAG,
                f"flag already exists: {flag.key} ({flag.environment})",
            )
        await self._repository.save_flag(project_id, flag)
        await self._store.invalidate(project_id, flag.key, flag.environment)
        logger.info(
            "flag_created",
            project_id=project_id,
            flag_key=flag.key,
            environment=flag.environment,
        )
        return flag

    async def update_flag(
        self, project_id: str, flag_key: str, environment: str, /, **changes: Any
    ) -> FlagRecord:
        """フラグのフィールドを更新する。

        識別子は位置引数のみで受け取り、changes の key / environment と衝突させない。
        キーや環境が変わる場合は旧エントリを削除し、新旧両方のキャッシュを無効化する。
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise FlagStoreError(
                FlagStoreErrorCodes.INVALID_FIELD,
                f"unknown flag fields: {', '.join(sorted(unknown))}",
            )
        current = await self._require(project_id, flag_key, environment)
        updated = dataclasses.replace(current, **changes)
        validate_flag(updated)

        moved = (updated.key, updated.environment) != (current.key, current.environment)
        if moved:
            clash = await self._repository.find_flag(
                project_id, updated.key, updated.environment
            )
            if clash is not None:
                raise FlagStoreError(
                    FlagStoreErrorCodes.DUPLICATE_FLAG,
                    f"flag already exists: {updated.key} ({updated.environment})",
                )
        await self._repository.save_flag(project_id, updated)
        if moved:
            await self._repository.delete_flag(project_id, current.key, current.environment)
            await self._store.invalidate(project_id, current.key, current.environment)
        await self._store.invalidate(project_id, updated.key, updated.environment)
        logger.info(
            "flag_updated",
            project_id=project_id,
            flag_key=updated.key,
            environment=updated.environment,
            fields=sorted(changes),
        )
        return updated

    async def set_status(
        self, project_id: str, flag_key: str, environment: str, enabled: bool
    ) -> FlagRecord:
        """キルスイッチを切り替える。"""
        return await self.update_flag(project_id, flag_key, environment, enabled=enabled)

    async def delete_flag(self, project_id: str, flag_key: str, environment: str) -> None:
        """フラグを削除する。"""
        await self._require(project_id, flag_key, environment)
        await self._repository.delete_flag(project_id, flag_key, environment)
        await self._store.invalidate(project_id, flag_key, environment)
        logger.info(
            "flag_deleted",
            project_id=project_id,
            flag_key=flag_key,
            environment=environment,
        )

    async def promote_flag(
        self,
        project_id: str,
        flag_key: str,
        source_environment: str,
        target_environment: str,
    ) -> FlagRecord:
        """フラグ定義を別環境へコピーする。コピー先は作成または上書きされる。

        コピー元のレコードは変更しない。
        """
        if source_environment == target_environment:
            raise FlagStoreError(
                FlagStoreErrorCodes.INVALID_ENVIRONMENT,
                "source and target environments must differ",
            )
        source = await self._require(project_id, flag_key, source_environment)
        promoted = dataclasses.replace(source, environment=target_environment)
        validate_flag(promoted)
        await self._repository.save_flag(project_id, promoted)
        await self._store.invalidate(project_id, flag_key, target_environment)
        logger.info(
            "flag_promoted",
            project_id=project_id,
            flag_key=flag_key,
            source=source_environment,
            target=target_environment,
        )
        return promoted
