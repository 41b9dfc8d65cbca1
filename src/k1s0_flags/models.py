"""flags データモデル"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, NamedTuple, TypeVar

from .exceptions import FlagsError
from .retriever import Retriever

T = TypeVar("T")

DEFAULT_POLLING_INTERVAL: float = 60.0
DEFAULT_FILE_FORMAT: str = "yaml"


@dataclass(frozen=True)
class Config:
    """フラグエンジン設定。

    polling_interval: リトリーバーを再読み込みする間隔（秒）。0 以下はデフォルト値。
    retrievers: フラグ定義の取得元。1 つ以上必須。
    file_format: フラグ定義の形式（"yaml" / "json" / "toml"）。空文字は "yaml"。
    """

    polling_interval: float = DEFAULT_POLLING_INTERVAL
    retrievers: Sequence[Retriever] | None = None
    file_format: str = ""


class Variation(NamedTuple, Generic[T]):
    """フラグ評価結果。エラー時の value は呼び出し元のデフォルト値そのもの。"""

    value: T
    error: FlagsError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TargetingRule:
    """属性の一致でバリエーションを選ぶターゲティングルール。"""

    attribute: str
    values: tuple[Any, ...]
    variation: str
    name: str = ""

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        if self.attribute not in attributes:
            return False
        return attributes[self.attribute] in self.values


@dataclass(frozen=True)
class Flag:
    """デコード済みのフラグ定義。"""

    key: str
    variations: dict[str, Any]
    default_variation: str
    targeting: tuple[TargetingRule, ...] = ()
    disable: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def select(self, attributes: Mapping[str, Any]) -> tuple[str, TargetingRule | None]:
        """評価コンテキストの属性からバリエーション名を選ぶ。最初に一致したルールが優先。"""
        for rule in self.targeting:
            if rule.matches(attributes):
                return rule.variation, rule
        return self.default_variation, None
