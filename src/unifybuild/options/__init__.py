"""Toolchain option sets and their migration."""

from .migration import (
    OPTION_CATEGORIES,
    OptionMigrationError,
    load_properties,
    load_schema,
    migrate_options,
    validate_options,
)
from .model import OptionModel

__all__ = [
    "OPTION_CATEGORIES",
    "OptionMigrationError",
    "OptionModel",
    "load_properties",
    "load_schema",
    "migrate_options",
    "validate_options",
]
