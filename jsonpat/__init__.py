"""按模式路由 JSON 键的反序列化库.

在精确键名绑定之外, 字段可以声明匹配规则 (prefix/contains/suffix/regex),
所有命中规则的 JSON 键都会被路由到该字段.
"""

from .analyzer import DynamicField, FieldKind, KnownField, RoutingTable, analyze
from .api import load, loads, unmarshal
from .cache import clear_cache, get_routing_table
from .config import Config
from .exceptions import (
    AnalysisError,
    DecodeError,
    FieldDecodeError,
    InvalidTargetError,
    JsonPatError,
    MalformedInputError,
    RuleSyntaxError,
)
from .options import PatOption
from .rule import MatchMode, Rule, matches, parse_rule
from .struct import PatField, Pattern, PatStruct

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "Config",
    "DecodeError",
    "DynamicField",
    "FieldDecodeError",
    "FieldKind",
    "InvalidTargetError",
    "JsonPatError",
    "KnownField",
    "MalformedInputError",
    "MatchMode",
    "PatField",
    "PatOption",
    "PatStruct",
    "Pattern",
    "RoutingTable",
    "Rule",
    "RuleSyntaxError",
    "__version__",
    "analyze",
    "clear_cache",
    "get_routing_table",
    "load",
    "loads",
    "matches",
    "parse_rule",
    "unmarshal",
]
