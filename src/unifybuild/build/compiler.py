"""
Build parameter compiler.

Turns a project into the BuilderParams document the external builder
consumes:

1. Collect sources and per-file extra flags
2. Aggregate include dirs, library dirs and defines
3. Compute the ARM memory limits
4. Let the toolchain descriptor and the target builder shape the options
5. Hash the option categories and pick a full or incremental build
6. Write ``<outDir>/builder.params``
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.project import Dependence, ProjectConfig
from ..config.settings import Settings
from ..options.model import OptionModel
from ..toolchains.base import ProjectInfo, ToolchainName
from ..toolchains.registry import ToolchainNotReadyError, ToolchainRegistry
from .hashing import compute_option_hashes, needs_rebuild
from .params import PARAMS_FILE_NAME, BuilderParams
from .sources import SourceCollector
from .targets import TargetBuilder

TOOLCHAIN_DEP_ID = "built-in.toolchain"

_INT_PREFIX = re.compile(r"^\s*([+-]?)(0[xX][0-9a-fA-F]+|\d+)")


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of a value; hex needs a 0x prefix.

    Zero and unparsable values give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    match = _INT_PREFIX.match(str(value))
    if not match:
        return None
    digits = match.group(2)
    number = int(digits, 16) if digits.lower().startswith("0x") else int(digits)
    if match.group(1) == "-":
        number = -number
    return number or None


def dedup(items: List[str]) -> List[str]:
    result = []
    for item in items:
        if item not in result:
            result.append(item)
    return result


class BuildParameterCompiler:
    """Compiles one project into a BuilderParams request."""

    def __init__(
        self,
        project: ProjectConfig,
        registry: ToolchainRegistry,
        settings: Optional[Settings] = None,
    ):
        self.project = project
        self.registry = registry
        self.settings = settings or registry.settings
        self.descriptor = registry.resolve(project.type, project.toolchain)
        self.target_builder = TargetBuilder.for_project(project, self.descriptor, self.settings)

    @property
    def params_path(self) -> Path:
        return self.project.out_path / PARAMS_FILE_NAME

    @property
    def old_params_path(self) -> Path:
        return self.project.out_path / f"{PARAMS_FILE_NAME}.old"

    def toolchain_dependence(self, options: Dict[str, Any]) -> Dependence:
        """Describe the toolchain's own includes, libraries and macros."""
        return Dependence(
            name="toolchain",
            inc_list=self.descriptor.get_system_includes(options),
            lib_list=self.descriptor.get_lib_dirs(),
            define_list=dedup(
                self.descriptor.get_internal_defines(options) + self.descriptor.get_custom_defines()
            ),
        )

    def get_include_dirs(self) -> List[str]:
        merged = self.project.get_all_merge_dep([TOOLCHAIN_DEP_ID])
        return dedup(
            merged.inc_list
            + self.descriptor.get_default_includes()
            + self.project.get_source_include_list()
        )

    def get_lib_dirs(self) -> List[str]:
        return self.project.get_all_merge_dep([TOOLCHAIN_DEP_ID]).lib_list

    def get_defines(self) -> List[str]:
        return self.project.get_all_merge_dep().define_list

    def _relative(self, paths: List[str]) -> List[str]:
        return [self.project.to_relative_path(p) for p in paths]

    def build_mode(
        self,
        prev: Optional[BuilderParams],
        sha: Dict[str, str],
        rebuild: bool,
        debug: bool,
    ) -> str:
        """
        Compute the '|'-joined build mode.

        Keil C51 always builds in 'normal' mode. Other toolchains build in
        'fast' (incremental) mode unless a rebuild was requested, there is
        no previous request, or a rebuild-relevant hash changed.
        """
        fast = not rebuild
        if fast:
            if prev is None:
                fast = False
            elif needs_rebuild(prev.sha, sha):
                logging.info("Compiler options changed, full rebuild required")
                fast = False

        if self.descriptor.name == ToolchainName.KEIL_C51:
            modes = ["normal"]
        else:
            modes = ["fast" if fast else "normal"]

        if self.settings.multithread:
            modes.append("multhread")
        if debug:
            modes.append("debug")

        return "|".join(m.lower() for m in modes)

    def compile(
        self,
        prev: Optional[BuilderParams] = None,
        rebuild: bool = False,
        debug: bool = False,
    ) -> BuilderParams:
        """
        Compile the project into a build request.

        Args:
            prev: Previous request, read from builder.params.old
            rebuild: Force a full rebuild
            debug: Ask the builder to print its parameters

        Returns:
            BuilderParams ready to be written

        Raises:
            ToolchainNotReadyError: If the toolchain is not installed
            InvalidMemoryLayoutError: If the ARM slot table is invalid
        """
        if not self.descriptor.is_ready():
            raise ToolchainNotReadyError(
                f"Toolchain {self.descriptor.name.value} is not installed at "
                f"'{self.descriptor.get_toolchain_dir()}'"
            )

        options = OptionModel(self.project, self.descriptor).load()
        self.project.set_toolchain_dependence(self.toolchain_dependence(options))

        source_info = SourceCollector(self.project).collect(prev.source_params if prev else None)
        ram, rom = self.target_builder.get_max_size()

        env = dict(self.project.env)
        if ram is None and env.get("MCU_RAM_SIZE"):
            ram = parse_int(env["MCU_RAM_SIZE"])
        if rom is None and env.get("MCU_ROM_SIZE"):
            rom = parse_int(env["MCU_ROM_SIZE"])

        out_dir = os.path.normpath(self.project.out_dir)

        params = BuilderParams(
            name=self.project.name,
            target=self.project.name,
            toolchain=self.descriptor.name.value,
            toolchain_cfg_file=os.path.normpath(f"../cfg/{self.descriptor.model_name}"),
            toolchain_location=str(self.descriptor.get_toolchain_dir()),
            build_mode="",
            show_repath_on_log=self.settings.print_relative_path,
            thread_num=self.settings.thread_num,
            dump_path=out_dir,
            out_dir=out_dir,
            root_dir=str(self.project.root_dir),
            ram=ram,
            rom=rom,
            source_list=source_info.sources,
            source_params=source_info.params,
            source_params_mtime=source_info.params_mtime,
            inc_dirs=self._relative(self.get_include_dirs()),
            lib_dirs=self._relative(self.get_lib_dirs()),
            defines=self.get_defines(),
            options=options,
            env=env,
        )

        project_info = ProjectInfo(
            target_name=self.project.name,
            root_dir=self.project.root_dir,
            out_dir=self.project.out_path,
        )
        self.descriptor.pre_handle_options(project_info, params.options)
        self.target_builder.pre_handle_options(params.options)

        params.sha = compute_option_hashes(params.defines, params.options)
        params.build_mode = self.build_mode(prev, params.sha, rebuild, debug)

        return params

    def write(self, params: BuilderParams) -> Path:
        path = params.save(self.params_path)
        logging.info(f"Builder params written to {path}")
        return path

    def builder_command(self) -> List[str]:
        cmd = [self.settings.builder_path, "-p", str(self.params_path)]
        extra = self.settings.additional_command_line.strip()
        if extra:
            cmd += extra.split()
        return cmd

    def generate(self, rebuild: bool = False, debug: bool = False) -> List[str]:
        """
        Compile, write the request and return the builder command line.

        Raises:
            ToolchainNotReadyError: If the toolchain is not installed
            InvalidMemoryLayoutError: If the ARM slot table is invalid
        """
        self.project.out_path.mkdir(parents=True, exist_ok=True)
        prev = BuilderParams.load(self.old_params_path)
        params = self.compile(prev, rebuild=rebuild, debug=debug)
        self.write(params)
        return self.builder_command()
