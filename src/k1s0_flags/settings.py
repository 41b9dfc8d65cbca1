"""YAML 設定ファイルからのエンジン設定読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import FlagsError, FlagsErrorCodes
from .models import DEFAULT_POLLING_INTERVAL, Config
from .retriever import FileRetriever


class FlagsSettings(BaseModel):
    """フラグエンジンのファイル設定。"""

    polling_interval: float = Field(default=DEFAULT_POLLING_INTERVAL, gt=0)
    file_format: Literal["yaml", "json", "toml"] | None = None
    paths: list[str] = Field(min_length=1)

    def to_config(self) -> Config:
        """paths ごとに FileRetriever を持つ Config を返す。"""
        return Config(
            polling_interval=self.polling_interval,
            retrievers=[FileRetriever(path) for path in self.paths],
            file_format=self.file_format or "",
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    """設定ファイルを読み込み、トップレベルのマッピングを返す。空ファイルは空の辞書。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FlagsError(
            code=FlagsErrorCodes.READ_FILE,
            message=f"Failed to read flags settings file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise FlagsError(
            code=FlagsErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FlagsError(
            code=FlagsErrorCodes.PARSE_YAML,
            message=f"Flags settings must be a mapping, got {type(data).__name__}: {path}",
        )
    return data


def load_settings(path: Path) -> FlagsSettings:
    """YAML 設定ファイルを読み込んで FlagsSettings を返す。

    Raises:
        FlagsError: 読み込み（READ_FILE_ERROR）、YAML 解析（PARSE_YAML_ERROR）、
            検証（VALIDATION_ERROR）に失敗した場合
    """
    data = _read_yaml(path)
    try:
        return FlagsSettings.model_validate(data)
    except ValidationError as e:
        raise FlagsError(
            code=FlagsErrorCodes.VALIDATION,
            message=f"Flags settings validation failed: {e}",
            cause=e,
        ) from e
