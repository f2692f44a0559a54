"""GNU toolchain descriptors for ARM and RISC-V.

Both descriptors probe the installed compiler once, at initialization,
for its predefined macros and system include directories.
"""

import logging
from abc import abstractmethod
from pathlib import Path
from typing import Any, Dict, List

from .base import ProjectInfo, ToolchainDescriptor, ToolchainName, exe_name, use_lib_linker
from .macros import MacroProbeError, probe_include_dirs, probe_macros

FALLBACK_GNU_MACROS = ["__GNUC__=8", "__GNUC_MINOR__=3", "__GNUC_PATCHLEVEL__=1"]


class GnuToolchainDescriptor(ToolchainDescriptor):
    """Common behavior of the prefixed GCC cross toolchains."""

    def __init__(self, settings):
        super().__init__(settings)
        self._macros: List[str] = []
        self._include_dirs: List[str] = []

    @abstractmethod
    def get_tool_prefix(self) -> str:
        """Get the executable prefix, e.g. ``arm-none-eabi-``."""
        pass

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "bin" / exe_name(f"{self.get_tool_prefix()}gcc")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "bin").is_dir()

    def initialize(self) -> None:
        gcc = self.get_compiler_path()

        try:
            self._macros = probe_macros(gcc)
        except MacroProbeError as e:
            logging.debug(f"{self.name.value}: macro probe failed, using fallback: {e}")
            self._macros = list(FALLBACK_GNU_MACROS)

        try:
            self._include_dirs = probe_include_dirs(gcc)
        except MacroProbeError as e:
            logging.debug(f"{self.name.value}: include probe failed: {e}")
            self._include_dirs = []

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        use_lib_linker(options)

        if not isinstance(options.get("global"), dict):
            options["global"] = {}

        options["global"]["toolPrefix"] = self.get_tool_prefix()

    def get_internal_defines(self, options: Dict[str, Any]) -> List[str]:
        return list(self._macros)

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        return list(self._include_dirs)


class GCC(GnuToolchainDescriptor):
    """GNU Arm Embedded Toolchain."""

    name = ToolchainName.GCC
    category = "GCC"
    model_name = "arm.gcc.model.json"
    config_name = "arm.options.gcc.json"
    verify_file_name = "arm.gcc.verify.json"
    version = 4
    description = "GNU Arm Embedded Toolchain"

    DEFAULT_OPTIONS = {
        "global": {
            "$float-abi-type": "softfp",
            "output-debug-info": "enable",
        },
        "c/cpp-compiler": {
            "language-c": "c11",
            "language-cpp": "c++11",
            "optimization": "level-debug",
            "warnings": "all-warnings",
            "C_FLAGS": "-ffunction-sections -fdata-sections",
            "CXX_FLAGS": "-ffunction-sections -fdata-sections",
        },
        "asm-compiler": {
            "ASM_FLAGS": "-ffunction-sections -fdata-sections",
        },
        "linker": {
            "output-format": "elf",
            "LD_FLAGS": "--specs=nosys.specs --specs=nano.specs -Wl,--gc-sections",
            "LIB_FLAGS": "-lm",
        },
    }

    def get_tool_prefix(self) -> str:
        return self.settings.gcc_prefix

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.gcc_dir)


class RISCV_GCC(GnuToolchainDescriptor):
    """GCC for RISC-V."""

    name = ToolchainName.RISCV_GCC
    category = "GCC"
    model_name = "riscv.gcc.model.json"
    config_name = "riscv.gcc.options.json"
    verify_file_name = "riscv.gcc.verify.json"
    version = 1
    description = "GCC for RISC-V"

    DEFAULT_OPTIONS = {
        "global": {
            "output-debug-info": "enable",
            "arch": "rv32imac",
            "abi": "ilp32",
            "code-model": "medlow",
        },
        "c/cpp-compiler": {
            "language-c": "c11",
            "language-cpp": "c++11",
            "optimization": "level-debug",
            "warnings": "all-warnings",
            "C_FLAGS": "-Wl,-Bstatic -ffunction-sections -fdata-sections",
            "CXX_FLAGS": "-ffunction-sections -fdata-sections",
        },
        "asm-compiler": {
            "ASM_FLAGS": "-Wl,-Bstatic",
        },
        "linker": {
            "output-format": "elf",
            "LD_FLAGS": "-Wl,--cref -Wl,--no-relax -Wl,--gc-sections "
                        "--specs=nosys.specs --specs=nano.specs -nostartfiles",
            "LIB_FLAGS": "",
        },
    }

    def get_tool_prefix(self) -> str:
        return self.settings.riscv_prefix

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.riscv_dir)
