"""Keil uVision project import and export."""

from .mapper import KeilSettingMapper
from .parser import (
    ARMParser,
    C51Parser,
    KeilParser,
    KeilParserResult,
    LegacyParseError,
    RteDependence,
    fix_group_name,
    judge_file_type,
    parse_macro_string,
    split_path_separator,
)

__all__ = [
    "ARMParser",
    "C51Parser",
    "KeilParser",
    "KeilParserResult",
    "KeilSettingMapper",
    "LegacyParseError",
    "RteDependence",
    "fix_group_name",
    "judge_file_type",
    "parse_macro_string",
    "split_path_separator",
]
