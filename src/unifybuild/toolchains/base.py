"""Toolchain descriptor interface.

Every supported compiler family is described by one ToolchainDescriptor.
A descriptor supplies the default option set of its family, the system
include directories and intrinsic macros of the installed compiler, and
the pre-handle transform applied to a build request's option set before
it is handed to the external builder.
"""

import copy
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.settings import Settings

DATA_DIR = Path(__file__).parent.parent / "data"


class ToolchainName(Enum):
    """Fixed set of supported toolchains."""

    AC5 = "AC5"
    AC6 = "AC6"
    GCC = "GCC"
    RISCV_GCC = "RISCV_GCC"
    KEIL_C51 = "Keil_C51"
    SDCC = "SDCC"
    IAR_STM8 = "IAR_STM8"
    NONE = "None"

    @classmethod
    def parse(cls, value: str) -> Optional["ToolchainName"]:
        """Look up a toolchain name, returning None for unknown values."""
        for member in cls:
            if member.value == value:
                return member
        return None


@dataclass
class ProjectInfo:
    """The slice of a project a descriptor may look at while pre-handling.

    Attributes:
        target_name: Output file stem
        root_dir: Absolute project root
        out_dir: Absolute output directory
    """

    target_name: str
    root_dir: Path
    out_dir: Path

    def to_absolute_path(self, path: str) -> str:
        normalized = path.replace("\\", "/")
        if os.path.isabs(normalized):
            return os.path.normpath(normalized)
        return os.path.normpath(os.path.join(str(self.root_dir), normalized))


def exe_name(name: str) -> str:
    """Append the host executable suffix."""
    return f"{name}.exe" if sys.platform == "win32" else name


def use_lib_linker(options: Dict[str, Any]) -> None:
    """Select the archiver command when the linker output format is 'lib'."""
    linker = options.get("linker")
    if linker and linker.get("output-format") == "lib":
        linker["$use"] = "linker-lib"


class ToolchainDescriptor(ABC):
    """Interface for toolchain descriptors.

    Concrete descriptors are registered once per process by the
    ToolchainRegistry and are immutable apart from their one-time
    initialization (compiler probing).
    """

    name: ToolchainName
    category: str
    model_name: str
    config_name: str
    verify_file_name: str
    version: int
    description: str = ""

    # Default option set, copied on every get_default_config() call
    DEFAULT_OPTIONS: Dict[str, Any] = {}

    # Header under data/force_include describing compiler keywords
    FORCE_INCLUDE_HEADER = "gcc.h"

    def __init__(self, settings: Settings):
        self.settings = settings

    def initialize(self) -> None:
        """One-time side-effecting setup, such as probing the compiler.

        Called by the registry exactly once per descriptor lifetime.
        """
        pass

    def get_default_config(self) -> Dict[str, Any]:
        """Get a fresh copy of the default option set."""
        options = copy.deepcopy(self.DEFAULT_OPTIONS)
        options["version"] = self.version
        options.setdefault("beforeBuildTasks", [])
        options.setdefault("afterBuildTasks", [])
        return options

    @abstractmethod
    def get_toolchain_dir(self) -> Path:
        """Get the toolchain install directory from the host settings."""
        pass

    @abstractmethod
    def get_compiler_path(self) -> Path:
        """Get the path of the C compiler executable."""
        pass

    @abstractmethod
    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        """Shape a build request's option set in place.

        Args:
            project_info: Target name and directories of the project
            options: Option set to mutate
        """
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """Check whether the toolchain installation is usable."""
        pass

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        return []

    def get_default_includes(self) -> List[str]:
        return []

    def get_internal_defines(self, options: Dict[str, Any]) -> List[str]:
        return []

    def get_custom_defines(self) -> List[str]:
        return []

    def get_lib_dirs(self) -> List[str]:
        return []

    def get_force_include_headers(self) -> List[str]:
        header = DATA_DIR / "force_include" / self.FORCE_INCLUDE_HEADER
        return [str(header)]
