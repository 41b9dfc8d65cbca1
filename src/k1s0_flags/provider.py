"""リトリーバーで読み込んだフラグ表を解決する OpenFeature プロバイダー"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from openfeature.evaluation_context import EvaluationContext
from openfeature.exception import FlagNotFoundError, TypeMismatchError
from openfeature.flag_evaluation import FlagResolutionDetails, Reason
from openfeature.provider import AbstractProvider, Metadata

from .models import Flag

T = TypeVar("T")

# ユーザー ID を参照するための属性名
_TARGETING_KEY_ATTRIBUTES = ("key", "targetingKey")


def _mismatch(flag_key: str, value: Any, expected: str) -> TypeMismatchError:
    return TypeMismatchError(
        f"Flag {flag_key} value {value!r} ({type(value).__name__}) is not {expected}"
    )


def _as_bool(flag_key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise _mismatch(flag_key, value, "bool")


def _as_int(flag_key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise _mismatch(flag_key, value, "int")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    raise _mismatch(flag_key, value, "int")


def _as_float(flag_key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(flag_key, value, "float")
    return float(value)


def _as_str(flag_key: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    raise _mismatch(flag_key, value, "str")


def _as_object(flag_key: str, value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    raise _mismatch(flag_key, value, "an object or array")


def _attributes(evaluation_context: EvaluationContext | None) -> dict[str, Any]:
    if evaluation_context is None:
        return {}
    attributes = dict(evaluation_context.attributes)
    if evaluation_context.targeting_key is not None:
        for name in _TARGETING_KEY_ATTRIBUTES:
            attributes.setdefault(name, evaluation_context.targeting_key)
    return attributes


def _flag_metadata(flag: Flag) -> dict[str, bool | int | float | str]:
    return {
        name: value
        for name, value in flag.metadata.items()
        if isinstance(value, (bool, int, float, str))
    }


class RetrieverProvider(AbstractProvider):
    """FlagEngine が読み込んだフラグ表を解決するプロバイダー。

    フラグ表は replace() で丸ごと差し替える。評価中の参照は差し替え前の表を保持する。
    """

    def __init__(self, name: str = "k1s0-flags") -> None:
        super().__init__()
        self._name = name
        self._flags: dict[str, Flag] = {}

    def get_metadata(self) -> Metadata:
        return Metadata(name=self._name)

    @property
    def flag_count(self) -> int:
        return len(self._flags)

    def replace(self, flags: Mapping[str, Flag]) -> None:
        """フラグ表を差し替える。"""
        self._flags = dict(flags)

    def shutdown(self) -> None:
        self._flags = {}

    def _resolve(
        self,
        flag_key: str,
        default_value: T,
        evaluation_context: EvaluationContext | None,
        convert: Callable[[str, Any], T],
    ) -> FlagResolutionDetails[T]:
        flag = self._flags.get(flag_key)
        if flag is None:
            raise FlagNotFoundError(f"Flag {flag_key} not found")

        metadata = _flag_metadata(flag)
        if flag.disable:
            return FlagResolutionDetails(
                value=default_value,
                reason=Reason.DISABLED,
                flag_metadata=metadata,
            )

        variant, rule = flag.select(_attributes(evaluation_context))
        if rule is not None:
            reason = Reason.TARGETING_MATCH
        elif flag.targeting:
            reason = Reason.DEFAULT
        else:
            reason = Reason.STATIC
        return FlagResolutionDetails(
            value=convert(flag_key, flag.variations[variant]),
            variant=variant,
            reason=reason,
            flag_metadata=metadata,
        )

    def resolve_boolean_details(
        self,
        flag_key: str,
        default_value: bool,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[bool]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_bool)

    def resolve_string_details(
        self,
        flag_key: str,
        default_value: str,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[str]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_str)

    def resolve_integer_details(
        self,
        flag_key: str,
        default_value: int,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[int]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_int)

    def resolve_float_details(
        self,
        flag_key: str,
        default_value: float,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[float]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_float)

    def resolve_object_details(
        self,
        flag_key: str,
        default_value: Any,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[Any]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_object)
