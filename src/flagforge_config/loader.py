"""設定ファイル読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError, ConfigErrorCodes
from .merger import deep_merge
from .models import AppConfig


def read_mapping(path: Path) -> dict[str, Any]:
    """YAML ファイルをマッピングとして読み込む。空ファイルは空辞書。"""
    try:
        with path.open(encoding="utf-8") as fp:
            data = yaml.safe_load(fp)
    except OSError as e:
        raise ConfigError(
            code=ConfigErrorCodes.READ_FILE,
            message=f"cannot read {path}: {e}",
            cause=e,
        ) from e
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" (line {mark.line + 1})" if mark is not None else ""
        raise ConfigError(
            code=ConfigErrorCodes.PARSE_YAML,
            message=f"invalid YAML in {path}{where}",
            cause=e,
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            code=ConfigErrorCodes.PARSE_YAML,
            message=f"{path} must contain a mapping, got {type(data).__name__}",
        )
    return data


def validate(data: dict[str, Any]) -> AppConfig:
    """辞書を AppConfig として検証する。"""
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in e.errors()
        )
        raise ConfigError(
            code=ConfigErrorCodes.VALIDATION,
            message=f"invalid config at {fields}",
            cause=e,
        ) from e


def load(base_path: Path, env_path: Path | None = None) -> AppConfig:
    """ベース設定に環境別オーバーレイを重ねて検証する。

    env_path が存在しない場合はベース設定のみを使う。
    """
    layers = [base_path]
    if env_path is not None and env_path.exists():
        layers.append(env_path)
    data: dict[str, Any] = {}
    for layer in layers:
        data = deep_merge(data, read_mapping(layer))
    return validate(data)
