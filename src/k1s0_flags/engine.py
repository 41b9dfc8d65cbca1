"""FlagEngine 実装（リトリーバーのポーリングと OpenFeature による評価）"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from openfeature import api
from openfeature.evaluation_context import EvaluationContext
from openfeature.exception import ErrorCode
from openfeature.flag_evaluation import FlagEvaluationDetails
from openfeature.provider.no_op_provider import NoOpProvider

from .exceptions import FlagsError, FlagsErrorCodes
from .models import DEFAULT_FILE_FORMAT, DEFAULT_POLLING_INTERVAL, Config, Flag, Variation
from .parser import SUPPORTED_FORMATS, decode_flags
from .provider import RetrieverProvider
from .retriever import Retriever

T = TypeVar("T")

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[ErrorCode, str] = {
    ErrorCode.FLAG_NOT_FOUND: FlagsErrorCodes.FLAG_NOT_FOUND,
    ErrorCode.TYPE_MISMATCH: FlagsErrorCodes.TYPE_MISMATCH,
    ErrorCode.PARSE_ERROR: FlagsErrorCodes.PARSE_ERROR,
}


# OpenFeature のドメイン登録は削除できないため、close 済みエンジンのドメイン名を再利用する
_domain_lock = threading.Lock()
_domain_ids = itertools.count(1)
_free_domains: list[str] = []


def _acquire_domain() -> str:
    with _domain_lock:
        if _free_domains:
            return _free_domains.pop()
        return f"k1s0-flags-{next(_domain_ids)}"


def _release_domain(domain: str) -> None:
    with _domain_lock:
        _free_domains.append(domain)


def _to_error(details: FlagEvaluationDetails[Any]) -> FlagsError:
    code = _ERROR_CODES.get(details.error_code, FlagsErrorCodes.GENERAL)  # type: ignore[arg-type]
    message = details.error_message or f"Failed to evaluate flag {details.flag_key}"
    return FlagsError(code=code, message=message)


class FlagEngine:
    """リトリーバーからフラグ定義を読み込み、型ごとのバリエーションを評価するエンジン。

    生成時に 1 回目の読み込みを行い、以降は polling_interval ごとにバックグラウンドで
    再読み込みする。force_refresh() でスケジュール外の再読み込みができる。
    読み込みに失敗した場合は直前のフラグ表を使い続ける。
    """

    def __init__(self, config: Config) -> None:
        """エンジンを生成する。

        Args:
            config: エンジン設定

        Raises:
            FlagsError: 設定が不正（CONFIG_ERROR）、または初回読み込みに失敗した場合
        """
        if not config.retrievers:
            raise FlagsError(
                code=FlagsErrorCodes.CONFIG_ERROR,
                message="Flags engine expects at least 1 retriever",
            )
        file_format = (config.file_format or DEFAULT_FILE_FORMAT).lower()
        if file_format not in SUPPORTED_FORMATS:
            raise FlagsError(
                code=FlagsErrorCodes.CONFIG_ERROR,
                message=f"Unsupported file format: {config.file_format}",
            )

        self._retrievers: tuple[Retriever, ...] = tuple(config.retrievers)
        self._file_format = file_format
        self._polling_interval = (
            config.polling_interval if config.polling_interval > 0 else DEFAULT_POLLING_INTERVAL
        )
        self._provider = RetrieverProvider()
        self._refresh_lock = threading.Lock()
        self._refreshed_at = datetime.min.replace(tzinfo=UTC)
        self._closed = False
        self._stop = threading.Event()

        self._load()

        self._domain = _acquire_domain()
        api.set_provider(self._provider, domain=self._domain)
        self._client = api.get_client(domain=self._domain)
        self._poller = threading.Thread(
            target=self._poll_loop,
            name=f"{self._domain}-poller",
            daemon=True,
        )
        self._poller.start()
        logger.info(
            "Flags engine initialized",
            extra={
                "flag_count": self._provider.flag_count,
                "retriever_count": len(self._retrievers),
                "file_format": self._file_format,
                "polling_interval": self._polling_interval,
            },
        )

    @property
    def cache_refresh_date(self) -> datetime:
        """最後にフラグ表を読み込んだ時刻（UTC）。読み込みごとに必ず増加する。"""
        return self._refreshed_at

    @property
    def file_format(self) -> str:
        return self._file_format

    @property
    def polling_interval(self) -> float:
        return self._polling_interval

    @property
    def domain(self) -> str:
        """プロバイダーを登録した OpenFeature ドメイン名。close 後は別のエンジンが再利用する。"""
        return self._domain

    @property
    def closed(self) -> bool:
        return self._closed

    def _retrieve(self, retriever: Retriever) -> bytes:
        try:
            return retriever.retrieve()
        except FlagsError:
            raise
        except Exception as e:
            raise FlagsError(
                code=FlagsErrorCodes.RETRIEVER_ERROR,
                message=f"Retriever {retriever!r} failed: {e}",
                cause=e,
            ) from e

    def _load(self) -> None:
        """全リトリーバーを読み込み、フラグ表を差し替える。後のリトリーバーが優先。"""
        with self._refresh_lock:
            flags: dict[str, Flag] = {}
            for retriever in self._retrievers:
                flags.update(decode_flags(self._retrieve(retriever), self._file_format))

            now = datetime.now(UTC)
            if now <= self._refreshed_at:
                now = self._refreshed_at + timedelta(microseconds=1)
            self._provider.replace(flags)
            self._refreshed_at = now

    def force_refresh(self) -> bool:
        """ポーリングを待たずにフラグ定義を再読み込みする。

        Returns:
            再読み込みに成功した場合 True。失敗時は直前のフラグ表を維持して False。
        """
        if self._closed:
            return False
        try:
            self._load()
        except FlagsError as e:
            logger.warning(
                "Failed to refresh flags, keeping previous flags",
                extra={"error": str(e), "domain": self._domain},
            )
            return False
        return True

    def _poll_loop(self) -> None:
        while not self._stop.wait(self._polling_interval):
            self.force_refresh()

    def close(self) -> None:
        """ポーリングを停止し、プロバイダーを解放する。複数回呼んでもよい。"""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._poller is not threading.current_thread():
            self._poller.join()
        api.set_provider(NoOpProvider(), domain=self._domain)
        _release_domain(self._domain)
        logger.info("Flags engine closed", extra={"domain": self._domain})

    def __enter__(self) -> FlagEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _evaluate(
        self,
        evaluate: Callable[[str, T, EvaluationContext | None], FlagEvaluationDetails[T]],
        flag_key: str,
        context: EvaluationContext,
        default: T,
    ) -> Variation[T]:
        if self._closed:
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.CLIENT_CLOSED,
                    message=f"Flags engine is closed, cannot evaluate flag {flag_key}",
                ),
            )
        details = evaluate(flag_key, default, context)
        if details.error_code is not None:
            return Variation(default, _to_error(details))
        return Variation(details.value)

    def bool_variation(
        self, flag_key: str, context: EvaluationContext, default: bool
    ) -> Variation[bool]:
        return self._evaluate(self._client.get_boolean_details, flag_key, context, default)

    def int_variation(
        self, flag_key: str, context: EvaluationContext, default: int
    ) -> Variation[int]:
        return self._evaluate(self._client.get_integer_details, flag_key, context, default)

    def float_variation(
        self, flag_key: str, context: EvaluationContext, default: float
    ) -> Variation[float]:
        return self._evaluate(self._client.get_float_details, flag_key, context, default)

    def string_variation(
        self, flag_key: str, context: EvaluationContext, default: str
    ) -> Variation[str]:
        return self._evaluate(self._client.get_string_details, flag_key, context, default)

    def json_variation(
        self, flag_key: str, context: EvaluationContext, default: Mapping[str, Any]
    ) -> Variation[Mapping[str, Any]]:
        result = self._evaluate(self._client.get_object_details, flag_key, context, default)
        if result.ok and not isinstance(result.value, Mapping):
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.TYPE_MISMATCH,
                    message=f"Flag {flag_key} value is not a JSON object",
                ),
            )
        return result

    def json_array_variation(
        self, flag_key: str, context: EvaluationContext, default: Sequence[Any]
    ) -> Variation[Sequence[Any]]:
        result = self._evaluate(self._client.get_object_details, flag_key, context, default)
        if result.ok and not isinstance(result.value, list):
            return Variation(
                default,
                FlagsError(
                    code=FlagsErrorCodes.TYPE_MISMATCH,
                    message=f"Flag {flag_key} value is not a JSON array",
                ),
            )
        return result
