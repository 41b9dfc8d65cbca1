"""フラグ定義ドキュメントのデコード"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Mapping
from typing import Any

import yaml

from .exceptions import FlagsError, FlagsErrorCodes
from .models import Flag, TargetingRule

SUPPORTED_FORMATS: tuple[str, ...] = ("yaml", "json", "toml")


def _load(data: bytes, file_format: str) -> Any:
    try:
        if file_format == "yaml":
            return yaml.safe_load(data) or {}
        if file_format == "json":
            return json.loads(data)
        if file_format == "toml":
            return tomllib.loads(data.decode("utf-8"))
    except (yaml.YAMLError, ValueError) as e:
        # json.JSONDecodeError / tomllib.TOMLDecodeError / UnicodeDecodeError は ValueError
        raise FlagsError(
            code=FlagsErrorCodes.PARSE_ERROR,
            message=f"Failed to parse {file_format} flag document: {e}",
            cause=e,
        ) from e
    raise FlagsError(
        code=FlagsErrorCodes.CONFIG_ERROR,
        message=f"Unsupported file format: {file_format}",
    )


def _invalid(key: str, reason: str) -> FlagsError:
    return FlagsError(
        code=FlagsErrorCodes.PARSE_ERROR,
        message=f"Invalid flag {key}: {reason}",
    )


def _decode_rule(key: str, index: int, raw: Any, variations: Mapping[str, Any]) -> TargetingRule:
    if not isinstance(raw, Mapping):
        raise _invalid(key, f"targeting[{index}] must be a mapping")
    attribute = raw.get("attribute")
    if not isinstance(attribute, str) or not attribute:
        raise _invalid(key, f"targeting[{index}] requires an attribute")
    variation = raw.get("variation")
    if variation not in variations:
        raise _invalid(key, f"targeting[{index}] references unknown variation {variation!r}")

    if ("in" in raw) == ("equals" in raw):
        raise _invalid(key, f"targeting[{index}] requires exactly one of 'in' or 'equals'")
    if "in" in raw:
        if not isinstance(raw["in"], list):
            raise _invalid(key, f"targeting[{index}].in must be a list")
        values = tuple(raw["in"])
    else:
        values = (raw["equals"],)

    return TargetingRule(
        attribute=attribute,
        values=values,
        variation=str(variation),
        name=str(raw.get("name", "")),
    )


def _decode_flag(key: str, raw: Any) -> Flag:
    if not isinstance(raw, Mapping):
        raise _invalid(key, "definition must be a mapping")

    variations = raw.get("variations")
    if not isinstance(variations, Mapping) or not variations:
        raise _invalid(key, "at least one variation is required")

    default_rule = raw.get("defaultRule")
    if not isinstance(default_rule, Mapping) or default_rule.get("variation") not in variations:
        raise _invalid(key, "defaultRule must reference a declared variation")

    raw_targeting = raw.get("targeting") or []
    if not isinstance(raw_targeting, list):
        raise _invalid(key, "targeting must be a list")

    disable = raw.get("disable", False)
    if not isinstance(disable, bool):
        raise _invalid(key, "disable must be a boolean")

    metadata = raw.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise _invalid(key, "metadata must be a mapping")

    return Flag(
        key=key,
        variations={str(name): value for name, value in variations.items()},
        default_variation=str(default_rule["variation"]),
        targeting=tuple(
            _decode_rule(key, i, rule, variations) for i, rule in enumerate(raw_targeting)
        ),
        disable=disable,
        metadata=dict(metadata),
    )


def decode_flags(data: bytes, file_format: str) -> dict[str, Flag]:
    """フラグ定義ドキュメントをデコードしてフラグキーごとの Flag を返す。

    Args:
        data: リトリーバーが返した生データ
        file_format: "yaml" / "json" / "toml"

    Returns:
        フラグキーをキーとする Flag の辞書

    Raises:
        FlagsError: 形式が未対応（CONFIG_ERROR）、またはドキュメントが不正（PARSE_ERROR）
    """
    document = _load(data, file_format)
    if not isinstance(document, Mapping):
        raise FlagsError(
            code=FlagsErrorCodes.PARSE_ERROR,
            message="Flag document must be a mapping of flag keys",
        )
    return {str(key): _decode_flag(str(key), raw) for key, raw in document.items()}
