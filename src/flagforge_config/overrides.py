"""環境変数による設定上書き"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .exceptions import ConfigError, ConfigErrorCodes
from .loader import validate
from .models import AppConfig

ENV_PREFIX = "FLAGFORGE_"


def overrides_from_env(
    environ: Mapping[str, str], prefix: str = ENV_PREFIX
) -> dict[str, str]:
    """``FLAGFORGE_REDIS__URL`` 形式の環境変数をドット区切りパスに変換する。

    例: {"FLAGFORGE_REDIS__URL": "redis://cache:6379/0"} -> {"redis.url": "redis://cache:6379/0"}
    """
    result: dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(prefix):
            continue
        path = name[len(prefix) :].lower().replace("__", ".")
        if path:
            result[path] = value
    return result


def merge_overrides(config: AppConfig, overrides: Mapping[str, str]) -> AppConfig:
    """ドット区切りパスの値を設定に反映した新しい AppConfig を返す。

    値は文字列のまま渡し、型変換は pydantic の検証に任せる。
    """
    data: dict[str, Any] = config.model_dump()
    for key_path, value in overrides.items():
        parts = key_path.split(".")
        if len(parts) < 2 or parts[0] not in AppConfig.model_fields:
            raise ConfigError(
                code=ConfigErrorCodes.UNKNOWN_OVERRIDE,
                message=f"override does not name a config section: {key_path}",
            )
        node = data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return validate(data)
