"""フラグ定義リトリーバー"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .exceptions import FlagsError, FlagsErrorCodes


class Retriever(Protocol):
    """フラグ定義の生データを返すリトリーバープロトコル。"""

    def retrieve(self) -> bytes: ...


class FileRetriever:
    """ローカルファイルからフラグ定義を読み込むリトリーバー。"""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def retrieve(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise FlagsError(
                code=FlagsErrorCodes.RETRIEVER_ERROR,
                message=f"Failed to read flag file: {self.path}",
                cause=e,
            ) from e

    def __repr__(self) -> str:
        return f"FileRetriever(path={str(self.path)!r})"
