"""k1s0 flags library."""

from .client import RFC3339, RFC3339_FRACTIONAL, FlagsClient
from .context import ANONYMOUS_USER, new_context
from .default import (
    close,
    get_engine,
    get_float,
    get_int,
    get_json_map,
    get_json_struct,
    get_string,
    get_time,
    is_enabled,
    is_enabled_by_id,
    is_enabled_by_id_list,
    new_client,
    refresh,
)
from .engine import FlagEngine
from .exceptions import FlagsError, FlagsErrorCodes
from .models import Config, Flag, TargetingRule, Variation
from .retriever import FileRetriever, Retriever
from .settings import FlagsSettings, load_settings

__all__ = [
    "ANONYMOUS_USER",
    "RFC3339",
    "RFC3339_FRACTIONAL",
    "Config",
    "FileRetriever",
    "Flag",
    "FlagEngine",
    "FlagsClient",
    "FlagsError",
    "FlagsErrorCodes",
    "FlagsSettings",
    "Retriever",
    "TargetingRule",
    "Variation",
    "close",
    "get_engine",
    "get_float",
    "get_int",
    "get_json_map",
    "get_json_struct",
    "get_string",
    "get_time",
    "is_enabled",
    "is_enabled_by_id",
    "is_enabled_by_id_list",
    "load_settings",
    "new_client",
    "new_context",
    "refresh",
]
