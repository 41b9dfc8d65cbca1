"""FlagEngine 上の型付きアクセサー（FlagsClient）"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import PydanticUserError, TypeAdapter

from .context import new_context
from .engine import FlagEngine
from .exceptions import FlagsError, FlagsErrorCodes
from .models import Variation

T = TypeVar("T")

RFC3339: str = "%Y-%m-%dT%H:%M:%S%z"
RFC3339_FRACTIONAL: str = "%Y-%m-%dT%H:%M:%S.%f%z"


def _format_time(value: datetime, layout: str) -> str:
    if layout == RFC3339:
        text = value.isoformat(timespec="seconds")
        return text[: -len("+00:00")] + "Z" if text.endswith("+00:00") else text
    return value.strftime(layout)


def _parse_time(text: str, layout: str) -> datetime:
    # RFC3339 は小数秒の有無と Z / ±hh:mm のどちらも受け付ける
    if layout == RFC3339:
        return datetime.fromisoformat(text)
    return datetime.strptime(text, layout)


def _key_type(lookup: Any) -> type:
    """is_enabled_by_id_list で使えるキーの型（int / str）を返す。"""
    if isinstance(lookup, bool) or not isinstance(lookup, (int, str)):
        raise TypeError(f"lookup must be an int or a str, got {type(lookup).__name__}")
    return int if isinstance(lookup, int) else str


def _matches(item: Any, lookup: int | str, key_type: type) -> bool:
    # JSON の数値は float で届くことがあるため、int に切り捨ててから比較する
    if isinstance(item, float):
        if not math.isfinite(item):
            return False
        item = int(item)
    if isinstance(item, bool) or not isinstance(item, key_type):
        return False
    return item == lookup


class FlagsClient:
    """FlagEngine をラップし、型ごとのアクセサーを提供するクライアント。

    すべてのアクセサーは Variation(value, error) を返す。評価・変換に失敗した場合は
    例外を送出せず、呼び出し元のデフォルト値とエラーを返す。
    """

    def __init__(self, engine: FlagEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> FlagEngine:
        return self._engine

    def is_enabled(self, flag: str, user_id: str, default: bool) -> Variation[bool]:
        """bool フラグを評価する。"""
        return self._engine.bool_variation(flag, new_context(user_id), default)

    def is_enabled_by_id(
        self, flag: str, user_id: str, target_id: str, attribute: str, default: bool
    ) -> Variation[bool]:
        """target_id を attribute という名前のカスタム属性として付与し、bool フラグを評価する。"""
        context = new_context(user_id, attribute, target_id)
        return self._engine.bool_variation(flag, context, default)

    def get_int(self, flag: str, user_id: str, default: int) -> Variation[int]:
        return self._engine.int_variation(flag, new_context(user_id), default)

    def get_float(self, flag: str, user_id: str, default: float) -> Variation[float]:
        return self._engine.float_variation(flag, new_context(user_id), default)

    def get_string(self, flag: str, user_id: str, default: str) -> Variation[str]:
        return self._engine.string_variation(flag, new_context(user_id), default)

    def get_time(
        self, flag: str, user_id: str, layout: str, default: datetime
    ) -> Variation[datetime]:
        """文字列フラグを layout（strftime 形式）で datetime に変換して返す。

        デフォルト値も同じ layout で文字列化してエンジンに渡す。
        layout が RFC3339 の場合は ISO 8601 として解釈し、小数秒付きの値も受け付ける。
        """
        try:
            default_text = _format_time(default, layout)
        except ValueError as e:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.MARSHAL_ERROR,
                    message=f"failed to format default time into layout {layout}: {e}",
                    cause=e,
                ),
            )

        result = self._engine.string_variation(flag, new_context(user_id), default_text)
        if result.error is not None:
            return Variation(default, result.error.annotate(f"failed to get flag {flag}"))

        try:
            return Variation(_parse_time(result.value, layout))
        except ValueError as e:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.UNMARSHAL_ERROR,
                    message=(
                        f"failed to parse time {result.value} of flag {flag} "
                        f"into layout {layout}: {e}"
                    ),
                    cause=e,
                ),
            )

    def get_json_struct(
        self,
        flag: str,
        user_id: str,
        default: T,
        model: type[T] | None = None,
    ) -> Variation[T]:
        """JSON オブジェクトフラグを model（省略時は default の型）に変換して返す。

        default を JSON 経由で辞書にしてエンジンに渡し、結果の辞書を再度 JSON 化して
        model に検証・変換する。dataclass / pydantic モデル / TypedDict に対応する。
        数値はフラグ定義のデコーダーが返した型のまま渡り、int フィールドに
        小数部を持つ値が来た場合は検証エラーになる。
        """
        try:
            adapter: TypeAdapter[T] = TypeAdapter(model if model is not None else type(default))
            default_map = json.loads(adapter.dump_json(default))
        except (PydanticUserError, ValueError) as e:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.MARSHAL_ERROR,
                    message=f"failed to marshal default value of flag {flag}: {e}",
                    cause=e,
                ),
            )
        if not isinstance(default_map, dict):
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.MARSHAL_ERROR,
                    message=f"default value of flag {flag} is not a JSON object",
                ),
            )

        result = self._engine.json_variation(flag, new_context(user_id), default_map)
        if result.error is not None:
            return Variation(default, result.error.annotate(f"failed to get flag {flag}"))

        try:
            payload = json.dumps(result.value)
        except (TypeError, ValueError) as e:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.MARSHAL_ERROR,
                    message=f"failed to marshal flag {flag} result: {e}",
                    cause=e,
                ),
            )
        try:
            return Variation(adapter.validate_json(payload))
        except ValueError as e:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.UNMARSHAL_ERROR,
                    message=f"failed to unmarshal flag {flag} to target: {e}",
                    cause=e,
                ),
            )

    def get_json_map(
        self, flag: str, user_id: str, default: Mapping[str, Any]
    ) -> Variation[Mapping[str, Any]]:
        """JSON オブジェクトフラグを辞書のまま返す。数値の型は変換しない。"""
        return self._engine.json_variation(flag, new_context(user_id), default)

    def is_enabled_by_id_list(
        self, flag: str, user_id: str, lookup: int | str, default: bool
    ) -> Variation[bool]:
        """JSON 配列フラグに lookup が含まれるかを返す。

        lookup は int または str。配列内の float は int に切り捨てて比較し、
        型の合わない要素は無視する。

        Raises:
            TypeError: lookup が int / str 以外の場合
        """
        key_type = _key_type(lookup)
        result = self._engine.json_array_variation(flag, new_context(user_id), [])
        if result.error is not None:
            return Variation(default, result.error.annotate(f"failed to get flag {flag}"))
        return Variation(any(_matches(item, lookup, key_type) for item in result.value))

    def refresh(self) -> bool:
        """エンジンのフラグ定義を強制的に再読み込みする。"""
        return self._engine.force_refresh()

    def close(self) -> None:
        self._engine.close()
