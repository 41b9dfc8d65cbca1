"""評価コンテキストの構築"""

from __future__ import annotations

from typing import Any

from openfeature.evaluation_context import EvaluationContext

ANONYMOUS_USER: str = "anonymous"


def new_context(
    user_id: str, attribute: str | None = None, value: Any = None
) -> EvaluationContext:
    """ユーザー ID から評価コンテキストを作る。

    user_id が空の場合は "anonymous" を使う。attribute を指定した場合は
    その名前で value をカスタム属性として付与する。
    """
    if not user_id:
        user_id = ANONYMOUS_USER
    if attribute is None:
        return EvaluationContext(targeting_key=user_id)
    return EvaluationContext(targeting_key=user_id, attributes={attribute: value})
