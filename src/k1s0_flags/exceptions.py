"""flags ライブラリの例外型定義"""

from __future__ import annotations


class FlagsError(Exception):
    """flags ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"

    def annotate(self, message: str) -> FlagsError:
        """コードを保ったまま、メッセージに文脈を付与した新しいエラーを返す。"""
        return FlagsError(self.code, f"{message}: {self.message}", cause=self)


class FlagsErrorCodes:
    """FlagsError のエラーコード定数。"""

    CONFIG_ERROR: str = "CONFIG_ERROR"
    RETRIEVER_ERROR: str = "RETRIEVER_ERROR"
    PARSE_ERROR: str = "PARSE_ERROR"
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    TYPE_MISMATCH: str = "TYPE_MISMATCH"
    GENERAL: str = "GENERAL"
    MARSHAL_ERROR: str = "MARSHAL_ERROR"
    UNMARSHAL_ERROR: str = "UNMARSHAL_ERROR"
    NOT_INITIALIZED: str = "NOT_INITIALIZED"
    ALREADY_INITIALIZED: str = "ALREADY_INITIALIZED"
    CLIENT_CLOSED: str = "CLIENT_CLOSED"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
