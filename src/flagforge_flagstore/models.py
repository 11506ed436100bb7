"""flagstore データモデル"""

from __future__ import annotations

from dataclasses import dataclass

ENVIRONMENTS: tuple[str, ...] = ("Development", "Staging", "Production")


@dataclass(frozen=True)
class Project:
    """API キーで解決されるプロジェクト。"""

    id: str
    name: str
    api_key: str
