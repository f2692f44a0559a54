"""
Target-specific option shaping.

After the toolchain descriptor has pre-handled the option set, the target
builder of the project type adds what depends on the project's compile
configuration: memory limits, CPU identifiers, linker scripts and
after-build tasks.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from ..config.project import ArmCompileConfig, GccCompileConfig, ProjectConfig, ProjectType
from ..config.settings import Settings
from ..toolchains.base import ToolchainDescriptor, ToolchainName
from .scatter import generate_scatter_file, max_memory_size


def to_unix_path(path: str) -> str:
    return path.replace("\\", "/")


def gen_cpu_id(cpu: str, fpu: str) -> str:
    """
    Build the CPU identifier with its floating point suffix.

    Args:
        cpu: Core name, e.g. 'Cortex-M4'
        fpu: One of 'none', 'single', 'double', 'no_dsp'

    Returns:
        Lower-case identifier, e.g. 'cortex-m4-sp'
    """
    cpu = cpu.lower()
    suffix = ""

    if fpu == "no_dsp":
        pass
    elif fpu == "single":
        if cpu.endswith(("m33", "m4", "m7")):
            suffix = "-sp"
    elif fpu == "double":
        if cpu.endswith(("m4", "m7")):
            suffix = "-dp"
    else:
        if cpu.endswith(("m33", "m4", "m7")):
            suffix = "-none"

    return cpu + suffix


class TargetBuilder:
    """Base target builder; reports no memory limit and shapes nothing."""

    def __init__(self, project: ProjectConfig, descriptor: ToolchainDescriptor, settings: Settings):
        self.project = project
        self.descriptor = descriptor
        self.settings = settings

    def get_max_size(self) -> Tuple[Optional[int], Optional[int]]:
        """Get the (ram, rom) limits in bytes."""
        return None, None

    def pre_handle_options(self, options: Dict[str, Any]) -> None:
        pass

    def _linker_script_list(self, paths: str, quote_all: bool = True) -> List[str]:
        result = []
        for path in paths.split(","):
            abs_path = to_unix_path(self.project.to_absolute_path(path.strip()))
            if quote_all or " " in abs_path:
                abs_path = f'"{abs_path}"'
            result.append(abs_path)
        return result

    @staticmethod
    def for_project(
        project: ProjectConfig, descriptor: ToolchainDescriptor, settings: Settings
    ) -> "TargetBuilder":
        """
        Create the target builder of a project's type.

        Raises:
            ValueError: If the project type has no target builder
        """
        builder_cls = TARGET_BUILDERS.get(project.type)
        if builder_cls is None:
            raise ValueError(f"not support this project type: '{project.type}'")
        return builder_cls(project, descriptor, settings)


class ArmTargetBuilder(TargetBuilder):
    """ARM targets: memory limits, CPU ids, scatter files, axf2elf."""

    SCATTER_TOOLCHAINS = (ToolchainName.AC5, ToolchainName.AC6)

    @property
    def config(self) -> ArmCompileConfig:
        return self.project.compile_config

    def get_max_size(self) -> Tuple[Optional[int], Optional[int]]:
        if self.config.use_custom_scatter_file:
            return None, None
        layout = self.config.storage_layout
        return max_memory_size(layout.ram), max_memory_size(layout.rom)

    def scatter_file_path(self) -> Path:
        return self.project.out_path / f"{self.project.name}.sct"

    def pre_handle_options(self, options: Dict[str, Any]) -> None:
        cpu_id = gen_cpu_id(self.config.cpu_type, self.config.floating_point_hardware)

        glob = options.setdefault("global", {})
        glob["microcontroller-cpu"] = cpu_id
        glob["microcontroller-fpu"] = cpu_id
        glob["microcontroller-float"] = cpu_id
        glob["target"] = cpu_id

        linker = options.setdefault("linker", {})

        if self.descriptor.name in self.SCATTER_TOOLCHAINS and not self.config.use_custom_scatter_file:
            sct = generate_scatter_file(self.config.storage_layout, self.scatter_file_path())
            logging.debug(f"Generated scatter file {sct}")
            linker["link-scatter"] = [f'"{to_unix_path(str(sct))}"']
        else:
            linker["link-scatter"] = self._linker_script_list(self.config.scatter_file_path)

        tasks = options.get("afterBuildTasks") or []
        if linker.get("output-format") != "lib":
            extra = []
            if self.descriptor.name in self.SCATTER_TOOLCHAINS and self.settings.convert_axf_to_elf:
                tool_dir = self.descriptor.get_toolchain_dir()
                output = f"${{outDir}}{os.sep}{self.project.name}"
                log = f"${{outDir}}{os.sep}axf2elf.log"
                extra.append({
                    "name": "axf to elf",
                    "command": f'axf2elf -d "{tool_dir}" -b "{output}.bin" -i "{output}.axf" '
                               f'-o "{output}.elf" > "{log}"',
                })
            if self.settings.insert_commands_at_begin:
                tasks = extra + tasks
            else:
                tasks = tasks + extra
        options["afterBuildTasks"] = tasks


class RiscvTargetBuilder(TargetBuilder):
    """RISC-V targets: quoted absolute linker script list."""

    def pre_handle_options(self, options: Dict[str, Any]) -> None:
        config: GccCompileConfig = self.project.compile_config
        options.setdefault("linker", {})["linker-script"] = self._linker_script_list(
            config.linker_script_path
        )


class AnyGccTargetBuilder(TargetBuilder):
    """Generic GCC targets: linker scripts quoted only when they contain spaces."""

    def pre_handle_options(self, options: Dict[str, Any]) -> None:
        config: GccCompileConfig = self.project.compile_config
        linker = options.setdefault("linker", {})

        if config.linker_script_path.strip():
            linker["linker-script"] = self._linker_script_list(config.linker_script_path, quote_all=False)
        else:
            linker.pop("linker-script", None)


class C51TargetBuilder(TargetBuilder):
    """8-bit targets; library instantiation is done by the descriptor."""

    pass


TARGET_BUILDERS: Dict[ProjectType, Type[TargetBuilder]] = {
    ProjectType.ARM: ArmTargetBuilder,
    ProjectType.RISCV: RiscvTargetBuilder,
    ProjectType.ANY_GCC: AnyGccTargetBuilder,
    ProjectType.C51: C51TargetBuilder,
}
