"""プロセス共有の FlagsClient とモジュールレベルのアクセサー

new_client() で初期化したクライアントを既定で使う。各アクセサーはキーワード引数
engine で明示的な FlagEngine を渡すこともでき、その場合は明示指定が優先される。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar

from .client import FlagsClient
from .engine import FlagEngine
from .exceptions import FlagsError, FlagsErrorCodes
from .models import Config, Variation

T = TypeVar("T")

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_default: FlagsClient | None = None


def new_client(config: Config) -> None:
    """プロセス共有のクライアントを初期化する。

    Args:
        config: エンジン設定

    Raises:
        FlagsError: リトリーバー未指定（CONFIG_ERROR）、初期化済み（ALREADY_INITIALIZED）、
            またはエンジンの生成に失敗した場合
    """
    global _default
    if not config.retrievers:
        raise FlagsError(
            code=FlagsErrorCodes.CONFIG_ERROR,
            message="Flags client expects at least 1 retriever",
        )
    with _lock:
        if _default is not None:
            raise FlagsError(
                code=FlagsErrorCodes.ALREADY_INITIALIZED,
                message="Flags client is already initialized, call close() first",
            )
        _default = FlagsClient(FlagEngine(config))
    logger.debug("Default flags client initialized")


def close() -> None:
    """プロセス共有のクライアントを閉じる。未初期化なら何もしない。"""
    global _default
    with _lock:
        client, _default = _default, None
    if client is not None:
        client.close()


def get_engine() -> FlagEngine | None:
    """プロセス共有クライアントのエンジンを返す。未初期化なら None。"""
    client = _default
    return client.engine if client is not None else None


def _select(engine: FlagEngine | None) -> FlagsClient | None:
    if engine is not None:
        return FlagsClient(engine)
    return _default


def _not_initialized(default: T) -> Variation[T]:
    return Variation(
        default,
        FlagsError(
            code=FlagsErrorCodes.NOT_INITIALIZED,
            message="Flags client is not initialized, call new_client() first",
        ),
    )


def refresh(*, engine: FlagEngine | None = None) -> bool:
    """フラグ定義を強制的に再読み込みする。未初期化なら False。"""
    client = _select(engine)
    if client is None:
        return False
    return client.refresh()


def is_enabled(
    flag: str, user_id: str, default: bool, *, engine: FlagEngine | None = None
) -> Variation[bool]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.is_enabled(flag, user_id, default)


def is_enabled_by_id(
    flag: str,
    user_id: str,
    target_id: str,
    attribute: str,
    default: bool,
    *,
    engine: FlagEngine | None = None,
) -> Variation[bool]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.is_enabled_by_id(flag, user_id, target_id, attribute, default)


def get_int(
    flag: str, user_id: str, default: int, *, engine: FlagEngine | None = None
) -> Variation[int]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_int(flag, user_id, default)


def get_float(
    flag: str, user_id: str, default: float, *, engine: FlagEngine | None = None
) -> Variation[float]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_float(flag, user_id, default)


def get_string(
    flag: str, user_id: str, default: str, *, engine: FlagEngine | None = None
) -> Variation[str]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_string(flag, user_id, default)


def get_time(
    flag: str,
    user_id: str,
    layout: str,
    default: datetime,
    *,
    engine: FlagEngine | None = None,
) -> Variation[datetime]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_time(flag, user_id, layout, default)


def get_json_struct(
    flag: str,
    user_id: str,
    default: T,
    model: type[T] | None = None,
    *,
    engine: FlagEngine | None = None,
) -> Variation[T]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_json_struct(flag, user_id, default, model)


def get_json_map(
    flag: str,
    user_id: str,
    default: Mapping[str, Any],
    *,
    engine: FlagEngine | None = None,
) -> Variation[Mapping[str, Any]]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.get_json_map(flag, user_id, default)


def is_enabled_by_id_list(
    flag: str,
    user_id: str,
    lookup: int | str,
    default: bool,
    *,
    engine: FlagEngine | None = None,
) -> Variation[bool]:
    client = _select(engine)
    if client is None:
        return _not_initialized(default)
    return client.is_enabled_by_id_list(flag, user_id, lookup, default)
