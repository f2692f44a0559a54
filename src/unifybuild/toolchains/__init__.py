"""Toolchain descriptors and the toolchain registry."""

from .arm import AC5, AC6
from .base import ProjectInfo, ToolchainDescriptor, ToolchainName
from .c51 import SDCC, IARSTM8, KeilC51, OutputLibraryError
from .gnu import GCC, RISCV_GCC
from .macros import MacroProbeError, macro_to_define, parse_macro_dump
from .registry import (
    TOOLCHAIN_ALLOW_LIST,
    ToolchainNotReadyError,
    ToolchainRegistry,
    UnknownToolchainError,
)

__all__ = [
    "AC5",
    "AC6",
    "GCC",
    "RISCV_GCC",
    "KeilC51",
    "SDCC",
    "IARSTM8",
    "OutputLibraryError",
    "ProjectInfo",
    "ToolchainDescriptor",
    "ToolchainName",
    "MacroProbeError",
    "macro_to_define",
    "parse_macro_dump",
    "TOOLCHAIN_ALLOW_LIST",
    "ToolchainNotReadyError",
    "ToolchainRegistry",
    "UnknownToolchainError",
]
