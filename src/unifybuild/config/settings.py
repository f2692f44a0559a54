"""
Host settings parser.

This module reads the host-wide settings that tell the build parameter
compiler where each toolchain is installed and how the external builder
should be driven.

Example unifybuild.ini:
    [toolchains]
    armcc5_dir = C:/Keil_v5/ARM/ARMCC
    gcc_dir = /opt/gcc-arm-none-eabi
    gcc_prefix = arm-none-eabi-

    [builder]
    builder_path = ${toolchains:gcc_dir}/../unify_builder
    thread_num = 8
"""

import configparser
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional


class SettingsError(Exception):
    """Exception raised for unreadable settings files."""

    pass


# Settings keys each toolchain depends on. A change to any of them
# invalidates the cached descriptor of that toolchain.
TOOLCHAIN_SETTING_KEYS: Dict[str, List[str]] = {
    "AC5": ["armcc5_dir"],
    "AC6": ["armcc6_dir"],
    "GCC": ["gcc_dir", "gcc_prefix"],
    "RISCV_GCC": ["riscv_dir", "riscv_prefix"],
    "Keil_C51": ["c51_dir"],
    "SDCC": ["sdcc_dir"],
    "IAR_STM8": ["iar_stm8_dir"],
}


@dataclass
class Settings:
    """Toolchain locations and builder switches."""

    armcc5_dir: str = ""
    armcc6_dir: str = ""
    gcc_dir: str = ""
    gcc_prefix: str = "arm-none-eabi-"
    riscv_dir: str = ""
    riscv_prefix: str = "riscv-none-embed-"
    c51_dir: str = ""
    sdcc_dir: str = ""
    iar_stm8_dir: str = ""

    builder_path: str = "unify_builder"
    thread_num: int = field(default_factory=lambda: os.cpu_count() or 1)
    multithread: bool = True
    print_relative_path: bool = True
    convert_axf_to_elf: bool = False
    insert_commands_at_begin: bool = False
    additional_command_line: str = ""

    TOOLCHAIN_SECTION = "toolchains"
    BUILDER_SECTION = "builder"

    @classmethod
    def from_ini(cls, ini_path: Optional[Path]) -> "Settings":
        """
        Load settings from an INI file.

        A missing file is not an error: every value keeps its default.

        Args:
            ini_path: Path to the settings file, or None for defaults

        Returns:
            Settings instance

        Raises:
            SettingsError: If the file exists but cannot be parsed
        """
        settings = cls()
        if ini_path is None or not ini_path.exists():
            return settings

        parser = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )

        try:
            parser.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise SettingsError(f"Failed to parse {ini_path}: {e}") from e

        try:
            if parser.has_section(cls.TOOLCHAIN_SECTION):
                section = parser[cls.TOOLCHAIN_SECTION]
                for key in TOOLCHAIN_SETTING_KEYS_FLAT:
                    if key in section and section[key] is not None:
                        setattr(settings, key, section[key].strip())

            if parser.has_section(cls.BUILDER_SECTION):
                section = parser[cls.BUILDER_SECTION]
                if section.get("builder_path"):
                    settings.builder_path = section["builder_path"].strip()
                if section.get("thread_num"):
                    settings.thread_num = section.getint("thread_num")
                for flag in (
                    "multithread",
                    "print_relative_path",
                    "convert_axf_to_elf",
                    "insert_commands_at_begin",
                ):
                    if section.get(flag):
                        setattr(settings, flag, section.getboolean(flag))
                if section.get("additional_command_line"):
                    settings.additional_command_line = section["additional_command_line"].strip()
        except (configparser.Error, ValueError) as e:
            raise SettingsError(f"Invalid value in {ini_path}: {e}") from e

        return settings

    @staticmethod
    def setting_keys_for(toolchain_name: str) -> List[str]:
        """Get the settings keys a toolchain depends on."""
        return TOOLCHAIN_SETTING_KEYS.get(toolchain_name, [])

    def changed_keys(self, other: "Settings") -> List[str]:
        """
        Compare against another settings instance.

        Args:
            other: Settings to compare with

        Returns:
            Names of the fields whose values differ
        """
        return [
            f.name for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        ]


TOOLCHAIN_SETTING_KEYS_FLAT = [
    key for keys in TOOLCHAIN_SETTING_KEYS.values() for key in keys
]
