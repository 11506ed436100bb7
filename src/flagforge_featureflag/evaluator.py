"""フラグ評価エンジン

状態を持たない純粋関数として実装する。評価順序は固定で、最初に一致した
ルールで確定する:

1. キルスイッチ (enabled=False)
2. ブロックユーザー
3. 許可ユーザー (ホワイトリスト)
4. パーセンテージロールアウト (BOOLEAN、またはバリアント未定義の MULTIVARIATE)
5. バリアントの累積ウェイト走査 (MULTIVARIATE)
6. フォールバック (ウェイト合計がバケットに届かない場合)

評価エンジン自体は例外を送出しない。不正なバリアント定義は 6 に落ちる。
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .hashing import hash_bucket
from .models import EvaluationReason, EvaluationResult, FlagKind, FlagRecord


def _off_result(
    flag: FlagRecord, reason: EvaluationReason, default: Any
) -> EvaluationResult:
    variant = flag.find_variant(flag.off_variant_id)
    if variant is not None:
        return EvaluationResult(
            enabled=False, value=variant.value, reason=reason, variant_id=variant.id
        )
    value = False if flag.kind == FlagKind.BOOLEAN else default
    return EvaluationResult(enabled=False, value=value, reason=reason)


def _default_result(
    flag: FlagRecord, reason: EvaluationReason, default: Any
) -> EvaluationResult:
    variant = flag.find_variant(flag.default_variant_id)
    if variant is not None:
        return EvaluationResult(
            enabled=True, value=variant.value, reason=reason, variant_id=variant.id
        )
    value = True if flag.kind == FlagKind.BOOLEAN else default
    return EvaluationResult(enabled=True, value=value, reason=reason)


def _fallback_result(
    flag: FlagRecord, bucket: int, total_weight: int, default: Any
) -> EvaluationResult:
    diagnostic = f"score: {bucket}, total_weight: {total_weight}"
    variant = flag.find_variant(flag.default_variant_id)
    if variant is None and flag.variants:
        variant = flag.variants[0]
    if variant is None:
        return EvaluationResult(
            enabled=True,
            value=default,
            reason=EvaluationReason.FALLBACK_DEFAULT,
            diagnostic=diagnostic,
        )
    return EvaluationResult(
        enabled=True,
        value=variant.value,
        reason=EvaluationReason.FALLBACK_DEFAULT,
        variant_id=variant.id,
        diagnostic=diagnostic,
    )


def evaluate(flag: FlagRecord, user_id: str, default: Any = None) -> EvaluationResult:
    """フラグをユーザーに対して評価する。

    Args:
        flag: 評価対象のフラグ定義
        user_id: ユーザー識別子
        default: MULTIVARIATE フラグで具体的なバリアントが決まらない場合の値

    Returns:
        評価結果。同じ入力には常に同じ結果を返す。
    """
    if not flag.enabled:
        return _off_result(flag, EvaluationReason.KILL_SWITCH, default)

    if user_id in flag.targeting.blocked_users:
        return _off_result(flag, EvaluationReason.BLOCKED_USER, default)

    if user_id in flag.targeting.allowed_users:
        return _default_result(flag, EvaluationReason.WHITELISTED, default)

    bucket = hash_bucket(user_id, flag.key)

    if flag.kind == FlagKind.BOOLEAN or not flag.variants:
        threshold = flag.rollout_percentage
        diagnostic = f"score: {bucket}, threshold: {threshold}"
        if bucket < threshold:
            return EvaluationResult(
                enabled=True,
                value=True,
                reason=EvaluationReason.PERCENTAGE_ROLLOUT,
                diagnostic=diagnostic,
            )
        return EvaluationResult(
            enabled=False,
            value=False,
            reason=EvaluationReason.PERCENTAGE_EXCLUDED,
            diagnostic=diagnostic,
        )

    # 定義順の累積ウェイト走査。順序に意味があるため二分探索にはしない
    cumulative = 0
    for variant in flag.variants:
        cumulative += variant.weight
        if bucket < cumulative:
            return EvaluationResult(
                enabled=True,
                value=variant.value,
                reason=EvaluationReason.VARIANT_ROLLOUT,
                variant_id=variant.id,
                diagnostic=f"variant: {variant.id}, score: {bucket}",
            )

    return _fallback_result(flag, bucket, cumulative, default)


def evaluate_all(
    flags: Mapping[str, FlagRecord] | Iterable[FlagRecord],
    user_id: str,
    default: Any = None,
) -> dict[str, EvaluationResult]:
    """複数フラグをまとめて評価し、フラグキーごとの結果を返す。"""
    records = flags.values() if isinstance(flags, Mapping) else flags
    return {flag.key: evaluate(flag, user_id, default) for flag in records}


def not_found(default: Any = None) -> EvaluationResult:
    """フラグ未定義時の評価結果。"""
    return EvaluationResult(
        enabled=False, value=default, reason=EvaluationReason.FLAG_NOT_FOUND
    )
