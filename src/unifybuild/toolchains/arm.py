"""ARM Compiler 5 and ARM Compiler 6 descriptors."""

from pathlib import Path
from typing import Any, Dict, List

from .base import ProjectInfo, ToolchainDescriptor, ToolchainName, exe_name, use_lib_linker


class AC5(ToolchainDescriptor):
    """ARM Compiler 5 (armcc)."""

    name = ToolchainName.AC5
    category = "ARMCC"
    model_name = "arm.v5.model.json"
    config_name = "arm.options.v5.json"
    verify_file_name = "arm.v5.verify.json"
    version = 4
    description = "ARM C Compiler Version 5"

    FORCE_INCLUDE_HEADER = "armcc.h"

    DEFAULT_OPTIONS = {
        "global": {
            "use-microLIB": True,
            "output-debug-info": "enable",
        },
        "c/cpp-compiler": {
            "optimization": "level-0",
            "one-elf-section-per-function": True,
            "c99-mode": True,
            "C_FLAGS": "--diag_suppress=1 --diag_suppress=1295",
            "CXX_FLAGS": "--diag_suppress=1 --diag_suppress=1295",
        },
        "asm-compiler": {},
        "linker": {
            "output-format": "elf",
        },
    }

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.armcc5_dir)

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "bin" / exe_name("armcc")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "bin").is_dir()

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        use_lib_linker(options)

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        inc_dir = self.get_toolchain_dir() / "include"
        if inc_dir.is_dir():
            return [str(inc_dir)] + [str(p) for p in sorted(inc_dir.iterdir())]
        return [str(inc_dir)]

    def get_lib_dirs(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "lib")]


class AC6(ToolchainDescriptor):
    """ARM Compiler 6 (armclang)."""

    name = ToolchainName.AC6
    category = "ARMCC"
    model_name = "arm.v6.model.json"
    config_name = "arm.options.v6.json"
    verify_file_name = "arm.v6.verify.json"
    version = 3
    description = "ARM C Compiler Version 6"

    FORCE_INCLUDE_HEADER = "armclang.h"

    DEFAULT_OPTIONS = {
        "global": {
            "use-microLIB": True,
            "output-debug-info": "enable",
        },
        "c/cpp-compiler": {
            "optimization": "level-0",
            "language-c": "c99",
            "language-cpp": "c++11",
            "link-time-optimization": True,
        },
        "asm-compiler": {},
        "linker": {
            "output-format": "elf",
            "misc-controls": "--diag_suppress=L6329",
        },
    }

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.armcc6_dir)

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "bin" / exe_name("armclang")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "bin").is_dir()

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        linker = options.setdefault("linker", {})
        use_lib_linker(options)

        compiler = options.get("c/cpp-compiler") or {}
        if compiler.get("link-time-optimization"):
            linker["link-time-optimization"] = compiler["link-time-optimization"]

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        inc_dir = self.get_toolchain_dir() / "include"
        return [str(inc_dir), str(inc_dir / "libcxx")]

    def get_lib_dirs(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "lib")]
