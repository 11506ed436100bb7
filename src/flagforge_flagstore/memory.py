"""インメモリリポジトリ実装"""

from __future__ import annotations

import asyncio

from flagforge_featureflag import FlagRecord

from .models import Project
from .repository import FlagRepository, ProjectRepository


class InMemoryFlagRepository(FlagRepository):
    """テスト・開発用インメモリフラグリポジトリ。"""

    def __init__(self) -> None:
        # (project_id, environment, key) -> FlagRecord, 挿入順を保持
        self._flags: dict[tuple[str, str, str], FlagRecord] = {}
        self._lock = asyncio.Lock()
        self.find_calls = 0

    async def find_flag(
        self, project_id: str, flag_key: str, environment: str
    ) -> FlagRecord | None:
        self.find_calls += 1
        return self._flags.get((project_id, environment, flag_key))

    async def list_flags(
        self, project_id: str, environment: str | None = None
    ) -> list[FlagRecord]:
        return [
            flag
            for (pid, env, _), flag in self._flags.items()
            if pid == project_id and (environment is None or env == environment)
        ]

    async def save_flag(self, project_id: str, flag: FlagRecord) -> None:
        async with self._lock:
            self._flags[(project_id, flag.environment, flag.key)] = flag

    async def delete_flag(self, project_id: str, flag_key: str, environment: str) -> bool:
        async with self._lock:
            return self._flags.pop((project_id, environment, flag_key), None) is not None


class InMemoryProjectRepository(ProjectRepository):
    """テスト・開発用インメモリプロジェクトリポジトリ。"""

    def __init__(self, projects: list[Project] | None = None) -> None:
        self._by_id: dict[str, Project] = {}
        for project in projects or []:
            self.add(project)

    def add(self, project: Project) -> None:
        self._by_id[project.id] = project

    async def find_by_api_key(self, api_key: str) -> Project | None:
        for project in self._by_id.values():
            if project.api_key == api_key:
                return project
        return None

    async def find_by_id(self, project_id: str) -> Project | None:
        return self._by_id.get(project_id)
