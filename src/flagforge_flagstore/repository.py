"""フラグ・プロジェクトのリポジトリ抽象"""

from __future__ import annotations

from abc import ABC, abstractmethod

from flagforge_featureflag import FlagRecord

from .models import Project


class FlagRepository(ABC):
    """フラグ定義の正本を保持するバックエンドストア。"""

    @abstractmethod
    async def find_flag(
        self, project_id: str, flag_key: str, environment: str
    ) -> FlagRecord | None:
        """(project, key, environment) で一意なフラグを取得する。"""
        ...

    @abstractmethod
    async def list_flags(
        self, project_id: str, environment: str | None = None
    ) -> list[FlagRecord]:
        """プロジェクトのフラグ一覧。environment 指定時はその環境のみ。"""
        ...

    @abstractmethod
    async def save_flag(self, project_id: str, flag: FlagRecord) -> None:
        """フラグを作成または上書きする。"""
        ...

    @abstractmethod
    async def delete_flag(self, project_id: str, flag_key: str, environment: str) -> bool:
        """フラグを削除する。削除できたら True。"""
        ...


class ProjectRepository(ABC):
    """プロジェクトの参照。"""

    @abstractmethod
    async def find_by_api_key(self, api_key: str) -> Project | None: ...

    @abstractmethod
    async def find_by_id(self, project_id: str) -> Project | None: ...
