"""
Table-driven option translation between ARM option sets and uVision XML.

The mapping table lives in ``data/option.mapper.json``:

    {
        "keilName": "TargetArmAds",
        "groups": {
            "AC5": {
                "<category>": {
                    "keilName": "<element under TargetArmAds>",
                    "properties": {
                        "<option key>": {
                            "keilName": "<element>",
                            "enum": {"<option value>": "<xml text>"},
                            "defaultKey": "<option value>"
                        }
                    }
                }
            },
            "AC6": {...}
        }
    }
"""

import json
import threading
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Union

from ..toolchains.base import DATA_DIR

MAPPER_FILE = DATA_DIR / "option.mapper.json"

_table: Optional[Dict[str, Any]] = None
_mappers: Dict[str, "KeilSettingMapper"] = {}
_mappers_lock = threading.Lock()

OptionValue = Union[str, bool]


def load_mapper_table() -> Dict[str, Any]:
    """Load the mapping table once per process."""
    global _table
    with _mappers_lock:
        if _table is None:
            with open(MAPPER_FILE, "r", encoding="utf-8") as f:
                _table = json.load(f)
        return _table


def _enum_key(value: OptionValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class KeilSettingMapper:
    """Translates the options of one ARM compiler variant (AC5 or AC6)."""

    def __init__(self, tool_version: str, table: Dict[str, Any]):
        if tool_version not in table["groups"]:
            raise ValueError(f"No Keil option mapping for toolchain '{tool_version}'")
        self.tool_version = tool_version
        self.keil_name = table["keilName"]
        self.groups: Dict[str, Any] = table["groups"][tool_version]

    @classmethod
    def get(cls, tool_version: str) -> "KeilSettingMapper":
        """
        Get the cached mapper of a compiler variant.

        Raises:
            ValueError: If the variant has no mapping
        """
        table = load_mapper_table()
        with _mappers_lock:
            mapper = _mappers.get(tool_version)
            if mapper is None:
                mapper = cls(tool_version, table)
                _mappers[tool_version] = mapper
            return mapper

    def get_group_list(self) -> List[str]:
        return list(self.groups.keys())

    def get_option_key_list(self, group_name: str) -> List[str]:
        group = self.groups.get(group_name)
        return list(group["properties"].keys()) if group else []

    def _option(self, group_name: str, key: str) -> Optional[Dict[str, Any]]:
        group = self.groups.get(group_name)
        if group is None:
            return None
        return group["properties"].get(key)

    def to_keil(self, target_option: ET.Element, group_name: str, key: str, value: OptionValue) -> None:
        """
        Write one option into a ``TargetOption`` element.

        Unmapped keys and values outside the option's enum are ignored.
        Missing elements along the path are created.
        """
        option = self._option(group_name, key)
        if option is None:
            return
        raw = option["enum"].get(_enum_key(value))
        if raw is None:
            return

        category = _ensure_child(target_option, self.keil_name)
        group = _ensure_child(category, self.groups[group_name]["keilName"])
        _ensure_child(group, option["keilName"]).text = raw

    def from_keil(self, target_option: ET.Element, group_name: str, key: str) -> Optional[OptionValue]:
        """
        Read one option from a ``TargetOption`` element.

        Returns:
            The enum key whose raw value matches ('true'/'false' as bools).
            If the field exists but matches nothing: the option's
            defaultKey, else False for boolean options, else None.
            None if the field does not exist.
        """
        option = self._option(group_name, key)
        if option is None:
            return None

        node = target_option.find(
            f"{self.keil_name}/{self.groups[group_name]['keilName']}/{option['keilName']}"
        )
        if node is None:
            return None

        raw = node.text or ""
        for enum_key, enum_value in option["enum"].items():
            if enum_value == raw:
                if enum_key == "true":
                    return True
                if enum_key == "false":
                    return False
                return enum_key

        if option.get("defaultKey") is not None:
            return option["defaultKey"]
        if "false" in option["enum"]:
            return False
        return None


def _ensure_child(parent: ET.Element, tag: str) -> ET.Element:
    node = parent.find(tag)
    if node is None:
        node = ET.SubElement(parent, tag)
    return node
