"""RetrieverProvider のユニットテスト"""

import pytest
from k1s0_flags import Flag, TargetingRule
from k1s0_flags.provider import RetrieverProvider
from openfeature.evaluation_context import EvaluationContext
from openfeature.exception import FlagNotFoundError, TypeMismatchError
from openfeature.flag_evaluation import Reason


def make_provider(*flags: Flag) -> RetrieverProvider:
    provider = RetrieverProvider()
    provider.replace({flag.key: flag for flag in flags})
    return provider


NUMBERS = Flag(key="numbers", variations={"f": 9.99, "b": True, "s": "x"}, default_variation="f")
PLANS = Flag(
    key="plans",
    variations={"pro": "pro", "free": "free"},
    default_variation="free",
    targeting=(TargetingRule(attribute="plan", values=("pro",), variation="pro"),),
    metadata={"owner": "billing", "tags": ["a"]},
)


def test_metadata_name() -> None:
    """プロバイダー名。"""
    assert RetrieverProvider().get_metadata().name == "k1s0-flags"


def test_flag_not_found() -> None:
    """未知のフラグは FlagNotFoundError。"""
    with pytest.raises(FlagNotFoundError):
        make_provider().resolve_boolean_details("missing", False)


def test_float_truncates_for_integer() -> None:
    """float 値は int に切り捨てられること。"""
    details = make_provider(NUMBERS).resolve_integer_details("numbers", 0)
    assert details.value == 9
    assert details.variant == "f"
    assert details.reason == Reason.STATIC


def test_bool_is_not_a_number() -> None:
    """bool 値は数値として扱わないこと。"""
    flag = Flag(key="b", variations={"b": True}, default_variation="b")
    provider = make_provider(flag)
    with pytest.raises(TypeMismatchError):
        provider.resolve_integer_details("b", 0)
    with pytest.raises(TypeMismatchError):
        provider.resolve_float_details("b", 0.0)


def test_string_mismatch() -> None:
    """文字列以外は TypeMismatchError。"""
    with pytest.raises(TypeMismatchError):
        make_provider(NUMBERS).resolve_string_details("numbers", "")


def test_targeting_reasons() -> None:
    """ルール一致は TARGETING_MATCH、不一致は DEFAULT。"""
    provider = make_provider(PLANS)
    matched = provider.resolve_string_details(
        "plans", "", EvaluationContext(targeting_key="1", attributes={"plan": "pro"})
    )
    assert (matched.value, matched.reason) == ("pro", Reason.TARGETING_MATCH)

    fallthrough = provider.resolve_string_details("plans", "", EvaluationContext("1"))
    assert (fallthrough.value, fallthrough.reason) == ("free", Reason.DEFAULT)


def test_flag_metadata_keeps_scalars_only() -> None:
    """フラグメタデータはスカラー値のみ渡すこと。"""
    details = make_provider(PLANS).resolve_string_details("plans", "")
    assert details.flag_metadata == {"owner": "billing"}


def test_disabled_flag() -> None:
    """無効フラグはデフォルト値と DISABLED。"""
    flag = Flag(key="d", variations={"on": True}, default_variation="on", disable=True)
    details = make_provider(flag).resolve_boolean_details("d", False)
    assert details.value is False
    assert details.reason == Reason.DISABLED


def test_replace_swaps_table() -> None:
    """replace でフラグ表が丸ごと差し替わること。"""
    provider = make_provider(NUMBERS)
    provider.replace({PLANS.key: PLANS})
    assert provider.flag_count == 1
    with pytest.raises(FlagNotFoundError):
        provider.resolve_float_details("numbers", 0.0)
