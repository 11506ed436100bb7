"""YAML シードファイルからインメモリリポジトリを構築する"""

from __future__ import annotations

from pathlib import Path

from flagforge_config import read_mapping
from flagforge_featureflag import FlagRecord
from flagforge_flagstore import (
    FlagService,
    FlagStore,
    InMemoryFlagRepository,
    InMemoryProjectRepository,
    Project,
)


async def load_seed(
    path: Path, store: FlagStore, projects: InMemoryProjectRepository
) -> int:
    """シードファイルのプロジェクトとフラグを登録し、登録したフラグ数を返す。

    ファイル形式::

        projects:
          - id: demo
            name: Demo
            apiKey: ff_demo_key
            flags:
              - {key: new-ui, enabled: true, rolloutPercentage: 50}
    """
    data = read_mapping(path)
    service = FlagService(store)
    created = 0
    for entry in data.get("projects", []):
        project = Project(
            id=str(entry["id"]),
            name=str(entry.get("name", entry["id"])),
            api_key=str(entry["apiKey"]),
        )
        projects.add(project)
        for flag_data in entry.get("flags", []):
            await service.create_flag(project.id, FlagRecord.from_dict(flag_data))
            created += 1
    return created


def in_memory_repositories() -> tuple[InMemoryProjectRepository, InMemoryFlagRepository]:
    """空のインメモリリポジトリ一式。"""
    return InMemoryProjectRepository(), InMemoryFlagRepository()
