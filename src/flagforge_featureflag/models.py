"""featureflag データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

DEFAULT_ENVIRONMENT = "Production"


class FlagKind(StrEnum):
    """フラグ種別。"""

    BOOLEAN = "BOOLEAN"
    MULTIVARIATE = "MULTIVARIATE"


class EvaluationReason(StrEnum):
    """評価理由コード。"""

    KILL_SWITCH = "KILL_SWITCH"
    BLOCKED_USER = "BLOCKED_USER"
    WHITELISTED = "WHITELISTED"
    PERCENTAGE_ROLLOUT = "PERCENTAGE_ROLLOUT"
    PERCENTAGE_EXCLUDED = "PERCENTAGE_EXCLUDED"
    VARIANT_ROLLOUT = "VARIANT_ROLLOUT"
    FALLBACK_DEFAULT = "FALLBACK_DEFAULT"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    SDK_NOT_INITIALIZED = "SDK_NOT_INITIALIZED"
    MISSING_PARAMETERS = "MISSING_PARAMETERS"
    INVALID_API_KEY = "INVALID_API_KEY"
    EVALUATION_ERROR = "EVALUATION_ERROR"


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})


def _as_bool(value: Any) -> bool:
    """真偽値として解釈できない値は False。"""
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    return tuple(str(v) for v in value if v is not None)


@dataclass(frozen=True)
class Variant:
    """フラグバリアント。"""

    id: str
    value: Any = None
    weight: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variant:
        # 旧形式では weight を rolloutPercentage と呼んでいた
        weight = data.get("weight", data.get("rolloutPercentage", 0))
        return cls(
            id=str(data.get("id", "")),
            value=data.get("value"),
            weight=max(_as_int(weight), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "value": self.value, "weight": self.weight}


@dataclass(frozen=True)
class Targeting:
    """ユーザーターゲティング。blocked が allowed より優先される。"""

    allowed_users: tuple[str, ...] = ()
    blocked_users: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> Targeting:
        if not isinstance(data, dict):
            return cls()
        return cls(
            allowed_users=_as_str_tuple(
                data.get("allowedUsers", data.get("allowed_users"))
            ),
            blocked_users=_as_str_tuple(
                data.get("blockedUsers", data.get("blocked_users"))
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowedUsers": list(self.allowed_users),
            "blockedUsers": list(self.blocked_users),
        }


@dataclass(frozen=True)
class FlagRecord:
    """評価対象となるフラグ定義。(project, environment) ごとに一意。"""

    key: str
    kind: FlagKind = FlagKind.BOOLEAN
    enabled: bool = False
    rollout_percentage: int = 0
    targeting: Targeting = field(default_factory=Targeting)
    variants: tuple[Variant, ...] = ()
    default_variant_id: str | None = None
    off_variant_id: str | None = None
    environment: str = DEFAULT_ENVIRONMENT
    description: str = ""

    def find_variant(self, variant_id: str | None) -> Variant | None:
        """ID でバリアントを探す。見つからなければ None。"""
        if variant_id is None:
            return None
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagRecord:
        """JSON 辞書から生成する。旧形式のフィールド名も受け付ける。"""
        try:
            kind = FlagKind(data.get("type", data.get("kind", FlagKind.BOOLEAN)))
        except ValueError:
            kind = FlagKind.BOOLEAN
        enabled = data.get("enabled", data.get("status", False))
        rollout = _as_int(data.get("rolloutPercentage", 0))
        raw_variants = data.get("variants") or []
        variants = tuple(
            Variant.from_dict(v) for v in raw_variants if isinstance(v, dict)
        )
        default_variant_id = data.get("defaultVariantId")
        off_variant_id = data.get("offVariantId")
        return cls(
            key=str(data.get("key", "")),
            kind=kind,
            enabled=_as_bool(enabled),
            rollout_percentage=min(max(rollout, 0), 100),
            targeting=Targeting.from_dict(
                data.get("targeting", data.get("targetingRules"))
            ),
            variants=variants,
            default_variant_id=(
                str(default_variant_id) if default_variant_id is not None else None
            ),
            off_variant_id=str(off_variant_id) if off_variant_id is not None else None,
            environment=str(data.get("environment") or DEFAULT_ENVIRONMENT),
            description=str(data.get("description") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.kind.value,
            "enabled": self.enabled,
            "rolloutPercentage": self.rollout_percentage,
            "targeting": self.targeting.to_dict(),
            "variants": [v.to_dict() for v in self.variants],
            "defaultVariantId": self.default_variant_id,
            "offVariantId": self.off_variant_id,
            "environment": self.environment,
            "description": self.description,
        }


@dataclass(frozen=True)
class EvaluationResult:
    """フラグ評価結果。"""

    enabled: bool
    value: Any
    reason: EvaluationReason
    variant_id: str | None = None
    diagnostic: str = ""

    @property
    def reason_text(self) -> str:
        """診断サフィックス付きの理由文字列。"""
        if self.diagnostic:
            return f"{self.reason.value} ({self.diagnostic})"
        return self.reason.value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "value": self.value,
            "reason": self.reason_text,
        }
        if self.variant_id is not None:
            data["variantId"] = self.variant_id
        return data
