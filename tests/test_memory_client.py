"""InMemoryFeatureFlagClient のユニットテスト"""

import pytest
from flagforge_featureflag import (
    EvaluationReason,
    FeatureFlagClientProtocol,
    FeatureFlagError,
    FeatureFlagErrorCodes,
    FlagKind,
    FlagRecord,
    InMemoryFeatureFlagClient,
    Variant,
)


def make_flag(key: str, enabled: bool, rollout: int = 100) -> FlagRecord:
    return FlagRecord(key=key, enabled=enabled, rollout_percentage=rollout)


def test_evaluate_enabled_flag() -> None:
    """有効フラグの評価。"""
    client = InMemoryFeatureFlagClient([make_flag("feature-a", True)])
    result = client.evaluate("feature-a", "user-1")
    assert result.enabled is True
    assert result.reason == EvaluationReason.PERCENTAGE_ROLLOUT


def test_evaluate_disabled_flag() -> None:
    """無効フラグの評価。"""
    client = InMemoryFeatureFlagClient([make_flag("feature-b", False)])
    result = client.evaluate("feature-b", "user-1")
    assert result.enabled is False
    assert result.reason == EvaluationReason.KILL_SWITCH


def test_evaluate_nonexistent_flag() -> None:
    """存在しないフラグは FLAG_NOT_FOUND と既定値。"""
    client = InMemoryFeatureFlagClient()
    result = client.evaluate("no-such-flag", "user-1", default="x")
    assert result.enabled is False
    assert result.value == "x"
    assert result.reason == EvaluationReason.FLAG_NOT_FOUND


def test_is_enabled() -> None:
    client = InMemoryFeatureFlagClient([make_flag("on", True), make_flag("off", False)])
    assert client.is_enabled("on", "user-1") is True
    assert client.is_enabled("off", "user-1") is False
    assert client.is_enabled("missing", "user-1") is False


def test_get_variant() -> None:
    """バリアント値、決まらなければ既定値。"""
    flag = FlagRecord(
        key="checkout-theme",
        kind=FlagKind.MULTIVARIATE,
        enabled=True,
        variants=(Variant("a", "light", 100),),
    )
    client = InMemoryFeatureFlagClient([flag])
    assert client.get_variant("checkout-theme", "user-1", "system") == "light"
    assert client.get_variant("missing", "user-1", "system") == "system"


def test_set_and_remove_flag() -> None:
    """set_flag で上書き、remove_flag で削除。"""
    client = InMemoryFeatureFlagClient()
    client.set_flag(make_flag("dynamic", False))
    client.set_flag(make_flag("dynamic", True))
    assert client.get_flag("dynamic").enabled is True
    assert client.remove_flag("dynamic") is True
    assert client.remove_flag("dynamic") is False
    assert client.get_flag("dynamic") is None


def test_set_flag_with_empty_key() -> None:
    """空キーは INVALID_FLAG。"""
    client = InMemoryFeatureFlagClient()
    with pytest.raises(FeatureFlagError) as exc_info:
        client.set_flag(make_flag("", True))
    assert exc_info.value.code == FeatureFlagErrorCodes.INVALID_FLAG
    assert str(exc_info.value).startswith("INVALID_FLAG: ")


def test_satisfies_protocol() -> None:
    """SDK クライアントと差し替え可能。"""
    client: FeatureFlagClientProtocol = InMemoryFeatureFlagClient()
    assert client.get_flag("none") is None
