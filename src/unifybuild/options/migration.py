"""
Option set migration.

Option files are versioned per toolchain. When a descriptor's version is
newer than the stored one, the stored set is migrated: legacy keys are
remapped, keys the current property table does not know are dropped and
missing keys are back-filled from the toolchain defaults.

Property tables are JSON Schema documents under ``data/verify``; the
``properties.<category>.properties`` object of each lists the valid keys
of that category.
"""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from ..toolchains.base import DATA_DIR, ToolchainDescriptor, ToolchainName

VERIFY_DIR = DATA_DIR / "verify"

OPTION_CATEGORIES = ["global", "c/cpp-compiler", "asm-compiler", "linker"]

_schema_cache: Dict[str, Dict[str, Any]] = {}
_schema_lock = threading.Lock()


class OptionMigrationError(Exception):
    """Raised when an option file cannot be read or migrated."""

    pass


def load_schema(verify_file_name: str) -> Dict[str, Any]:
    """
    Load a property-description schema, caching it for the process.

    Args:
        verify_file_name: File name under data/verify

    Returns:
        Parsed JSON Schema document

    Raises:
        OptionMigrationError: If the resource is missing or malformed
    """
    with _schema_lock:
        if verify_file_name in _schema_cache:
            return _schema_cache[verify_file_name]

        path = VERIFY_DIR / verify_file_name
        try:
            with open(path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise OptionMigrationError(f"Failed to load property table {path}: {e}") from e

        _schema_cache[verify_file_name] = schema
        return schema


def load_properties(descriptor: ToolchainDescriptor) -> Dict[str, Any]:
    """Get the per-category property table of a toolchain."""
    return load_schema(descriptor.verify_file_name).get("properties", {})


def _apply_compat_shims(
    options: Dict[str, Any], defaults: Dict[str, Any], name: ToolchainName
) -> None:
    linker = options.get("linker")
    if linker:
        if name == ToolchainName.SDCC and linker.get("executable-format"):
            defaults["linker"]["output-format"] = linker["executable-format"]
        if linker.get("output-lib"):
            defaults["linker"]["output-format"] = "lib"

    compiler = options.get("c/cpp-compiler")
    if compiler:
        if name == ToolchainName.AC5 and compiler.get("misc-control"):
            if compiler.get("C_FLAGS"):
                compiler["C_FLAGS"] = f"{compiler['misc-control']} {compiler['C_FLAGS']}"
            else:
                compiler["C_FLAGS"] = compiler["misc-control"]

        if name == ToolchainName.IAR_STM8:
            defaults["global"]["code-mode"] = compiler.get("code-mode") or defaults["global"]["code-mode"]
            defaults["global"]["data-mode"] = compiler.get("data-mode") or defaults["global"]["data-mode"]

    # Warning numbers used to be stored as a list
    for category in OPTION_CATEGORIES:
        section = options.get(category)
        if isinstance(section, dict) and isinstance(section.get("disable-warnings"), list):
            section["disable-warnings"] = ",".join(str(w) for w in section["disable-warnings"])


def migrate_options(
    on_disk: Dict[str, Any],
    descriptor: ToolchainDescriptor,
    properties: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Migrate an option set to the descriptor's schema version.

    The input is never modified. A set whose version is already at or
    above the descriptor's version is returned as a copy whose only
    change is a numeric version.

    Args:
        on_disk: Option set as read from disk
        descriptor: Toolchain the options belong to
        properties: Per-category property table; loaded from the
            descriptor's verify resource when omitted

    Returns:
        Migrated option set

    Raises:
        OptionMigrationError: If the stored version is not a number
    """
    options = copy.deepcopy(on_disk)
    try:
        old_version = int(options.get("version") or 0)
    except (TypeError, ValueError) as e:
        raise OptionMigrationError(f"Invalid option set version {options.get('version')!r}: {e}") from e

    if old_version >= descriptor.version:
        options["version"] = old_version
        return options

    if properties is None:
        properties = load_properties(descriptor)

    defaults = descriptor.get_default_config()
    options["version"] = defaults["version"]

    _apply_compat_shims(options, defaults, descriptor.name)

    for category in OPTION_CATEGORIES:
        table = properties.get(category)
        section = options.get(category)
        if table and isinstance(section, dict):
            known = table.get("properties", {})
            for key in [k for k in section if k not in known]:
                del section[key]

    for category in OPTION_CATEGORIES:
        default_section = defaults.get(category)
        if default_section is None:
            continue
        section = options.get(category)
        if isinstance(section, dict):
            for key, value in default_section.items():
                if key not in section:
                    section[key] = value
        else:
            options[category] = default_section

    logging.info(
        f"Migrated {descriptor.name.value} options from version {old_version} to {options['version']}"
    )
    return options


def validate_options(options: Dict[str, Any], descriptor: ToolchainDescriptor) -> List[str]:
    """
    Check an option set against the toolchain's schema.

    Violations are logged as warnings and returned; they never abort.

    Returns:
        Human-readable violation messages
    """
    try:
        schema = load_schema(descriptor.verify_file_name)
    except OptionMigrationError as e:
        logging.warning(str(e))
        return []

    messages = []
    validator = Draft7Validator(schema)
    for error in sorted(validator.iter_errors(options), key=lambda e: list(e.absolute_path)):
        location = "/".join(str(p) for p in error.absolute_path) or "<root>"
        message = f"{descriptor.name.value} option '{location}': {error.message}"
        logging.warning(message)
        messages.append(message)
    return messages


def read_option_file(path: Path) -> Dict[str, Any]:
    """
    Read an option file.

    Raises:
        OptionMigrationError: If the file is unreadable or not a JSON object
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise OptionMigrationError(f"Failed to read option file {path}: {e}") from e

    if not isinstance(data, dict):
        raise OptionMigrationError(f"Option file {path} does not hold a JSON object")
    return data


def write_option_file(path: Path, options: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(options, f, indent=4)
