"""
Abstract project model.

This module holds the toolchain-agnostic description of an embedded
project: file groups, dependency groups (include dirs, library dirs and
macros), the target-specific compile configuration and the memory layout
of ARM targets. It is persisted as ``project.json`` under the project root.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

PROJECT_FILE_NAME = "project.json"
OPTION_DIR_NAME = ".unifybuild"
VIRTUAL_ROOT = "<virtual_root>"
BUILT_IN_GROUP = "built-in"
TOOLCHAIN_DEPENDENCE = "toolchain"


class ProjectConfigError(Exception):
    """Exception raised for unreadable or malformed project files."""

    pass


class ProjectType(Enum):
    """Project target family."""

    ARM = "ARM"
    RISCV = "RISC-V"
    C51 = "C51"
    ANY_GCC = "ANY-GCC"


@dataclass
class SourceFile:
    path: str
    disabled: bool = False


@dataclass
class FileGroup:
    """A named group of source files.

    Virtual groups do not map to a directory on disk; their name is the
    virtual folder path, rooted at ``<virtual_root>``.
    """

    name: str
    files: List[SourceFile] = field(default_factory=list)
    disabled: bool = False
    virtual: bool = False


@dataclass
class Dependence:
    name: str
    inc_list: List[str] = field(default_factory=list)
    lib_list: List[str] = field(default_factory=list)
    define_list: List[str] = field(default_factory=list)


@dataclass
class DependenceGroup:
    name: str
    depend_list: List[Dependence] = field(default_factory=list)

    def find(self, name: str) -> Optional[Dependence]:
        for dep in self.depend_list:
            if dep.name == name:
                return dep
        return None


@dataclass
class MemoryRegion:
    """One fixed slot of the ARM RAM/ROM table.

    Attributes:
        tag: One of RAM, IRAM, ROM, IROM
        id: 1-based slot id within the tag
        start_addr: Start address as a hex string
        size: Region size as a hex string
        selected: Whether the region takes part in the layout
        no_init: RAM only, region holds uninitialized data
        is_startup: ROM only, region holds the reset vector
    """

    tag: str
    id: int
    start_addr: str = "0x00000000"
    size: str = "0x00000000"
    selected: bool = False
    no_init: bool = False
    is_startup: bool = False


@dataclass
class StorageLayout:
    """Five RAM and five ROM slots: RAM1-3, IRAM1-2 and ROM1-3, IROM1-2."""

    ram: List[MemoryRegion] = field(default_factory=list)
    rom: List[MemoryRegion] = field(default_factory=list)

    @classmethod
    def default(cls) -> "StorageLayout":
        ram = [MemoryRegion("RAM", i) for i in range(1, 4)]
        ram += [MemoryRegion("IRAM", i) for i in range(1, 3)]
        rom = [MemoryRegion("ROM", i) for i in range(1, 4)]
        rom += [MemoryRegion("IROM", i) for i in range(1, 3)]
        return cls(ram=ram, rom=rom)


@dataclass
class ArmCompileConfig:
    cpu_type: str = "Cortex-M3"
    floating_point_hardware: str = "none"
    use_custom_scatter_file: bool = False
    scatter_file_path: str = ""
    storage_layout: StorageLayout = field(default_factory=StorageLayout.default)


@dataclass
class GccCompileConfig:
    linker_script_path: str = ""


@dataclass
class C51CompileConfig:
    linker_script: str = ""


CompileConfig = Union[ArmCompileConfig, GccCompileConfig, C51CompileConfig]


def default_compile_config(project_type: ProjectType) -> CompileConfig:
    """Create the empty compile configuration for a project type."""
    if project_type == ProjectType.ARM:
        return ArmCompileConfig()
    if project_type == ProjectType.C51:
        return C51CompileConfig()
    return GccCompileConfig()


def _region_to_dict(region: MemoryRegion) -> Dict[str, Any]:
    data = {
        "tag": region.tag,
        "id": region.id,
        "startAddr": region.start_addr,
        "size": region.size,
        "isChecked": region.selected,
    }
    if region.tag.endswith("RAM"):
        data["noInit"] = region.no_init
    else:
        data["isStartup"] = region.is_startup
    return data


def _region_from_dict(data: Dict[str, Any]) -> MemoryRegion:
    return MemoryRegion(
        tag=data["tag"],
        id=int(data["id"]),
        start_addr=data.get("startAddr", "0x00000000"),
        size=data.get("size", "0x00000000"),
        selected=bool(data.get("isChecked", False)),
        no_init=bool(data.get("noInit", False)),
        is_startup=bool(data.get("isStartup", False)),
    )


def _compile_config_to_dict(config: CompileConfig) -> Dict[str, Any]:
    if isinstance(config, ArmCompileConfig):
        return {
            "cpuType": config.cpu_type,
            "floatingPointHardware": config.floating_point_hardware,
            "useCustomScatterFile": config.use_custom_scatter_file,
            "scatterFilePath": config.scatter_file_path,
            "storageLayout": {
                "RAM": [_region_to_dict(r) for r in config.storage_layout.ram],
                "ROM": [_region_to_dict(r) for r in config.storage_layout.rom],
            },
        }
    if isinstance(config, C51CompileConfig):
        return {"linkerScript": config.linker_script}
    return {"linkerScriptPath": config.linker_script_path}


def _compile_config_from_dict(project_type: ProjectType, data: Dict[str, Any]) -> CompileConfig:
    if project_type == ProjectType.ARM:
        layout_data = data.get("storageLayout")
        if layout_data:
            layout = StorageLayout(
                ram=[_region_from_dict(r) for r in layout_data.get("RAM", [])],
                rom=[_region_from_dict(r) for r in layout_data.get("ROM", [])],
            )
        else:
            layout = StorageLayout.default()
        return ArmCompileConfig(
            cpu_type=data.get("cpuType", "Cortex-M3"),
            floating_point_hardware=data.get("floatingPointHardware", "none"),
            use_custom_scatter_file=bool(data.get("useCustomScatterFile", False)),
            scatter_file_path=data.get("scatterFilePath", ""),
            storage_layout=layout,
        )
    if project_type == ProjectType.C51:
        return C51CompileConfig(linker_script=data.get("linkerScript", ""))
    return GccCompileConfig(linker_script_path=data.get("linkerScriptPath", ""))


@dataclass
class ProjectConfig:
    """Toolchain-agnostic project description.

    Attributes:
        name: Target name, also the output file stem
        type: Project target family
        toolchain: Toolchain name as stored; may be invalid or "None"
        root_dir: Absolute project root directory
        out_dir: Output directory, relative to root_dir
        file_groups: Ordered source groups
        dependence_groups: Include/lib/define providers
        compile_config: Target-specific configuration
        source_extra_args_file: Per-file option table, relative to root_dir
        env: Extra environment values handed to the builder
    """

    name: str
    type: ProjectType
    root_dir: Path
    toolchain: str = "None"
    out_dir: str = "build"
    file_groups: List[FileGroup] = field(default_factory=list)
    dependence_groups: List[DependenceGroup] = field(default_factory=list)
    compile_config: Optional[CompileConfig] = None
    source_extra_args_file: str = "files.options.json"
    env: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.root_dir = Path(self.root_dir)
        if self.compile_config is None:
            self.compile_config = default_compile_config(self.type)
        if not any(g.name == BUILT_IN_GROUP for g in self.dependence_groups):
            self.dependence_groups.insert(0, DependenceGroup(BUILT_IN_GROUP))

    # ------------------------------------------------------------------
    # paths
    # ------------------------------------------------------------------

    def to_absolute_path(self, path: str) -> str:
        """Resolve a project-relative (or already absolute) path."""
        normalized = path.replace("\\", "/")
        if os.path.isabs(normalized) or (len(normalized) > 1 and normalized[1] == ":"):
            return os.path.normpath(normalized)
        return os.path.normpath(os.path.join(str(self.root_dir), normalized))

    def to_relative_path(self, path: str) -> str:
        """Express a path relative to the project root, with forward slashes.

        Paths on another drive cannot be made relative and are returned
        unchanged apart from separator normalization.
        """
        try:
            rel = os.path.relpath(self.to_absolute_path(path), str(self.root_dir))
        except ValueError:
            return path.replace("\\", "/")
        return rel.replace("\\", "/")

    @property
    def out_path(self) -> Path:
        return Path(self.to_absolute_path(self.out_dir))

    def option_file_for(self, config_name: str) -> Path:
        """Get the option file path of a toolchain configuration."""
        return self.root_dir / OPTION_DIR_NAME / config_name

    # ------------------------------------------------------------------
    # dependencies
    # ------------------------------------------------------------------

    def get_built_in_group(self) -> DependenceGroup:
        for group in self.dependence_groups:
            if group.name == BUILT_IN_GROUP:
                return group
        group = DependenceGroup(BUILT_IN_GROUP)
        self.dependence_groups.insert(0, group)
        return group

    def set_toolchain_dependence(self, dep: Dependence) -> None:
        """Install or replace the toolchain dependence of the built-in group."""
        group = self.get_built_in_group()
        group.depend_list = [d for d in group.depend_list if d.name != TOOLCHAIN_DEPENDENCE]
        dep.name = TOOLCHAIN_DEPENDENCE
        group.depend_list.append(dep)

    def get_all_merge_dep(self, exclude: Optional[List[str]] = None) -> Dependence:
        """
        Merge every dependence into one.

        Args:
            exclude: Dependence ids to skip, as ``<group>.<dependence>``

        Returns:
            Dependence holding the de-duplicated union of all lists,
            in first-seen order
        """
        exclude = exclude or []
        merged = Dependence("merged")

        for group in self.dependence_groups:
            for dep in group.depend_list:
                if f"{group.name}.{dep.name}" in exclude:
                    continue
                for target, source in (
                    (merged.inc_list, dep.inc_list),
                    (merged.lib_list, dep.lib_list),
                    (merged.define_list, dep.define_list),
                ):
                    for item in source:
                        if item not in target:
                            target.append(item)

        return merged

    def get_source_include_list(self) -> List[str]:
        """Get the directories holding the files of non-virtual groups, absolute."""
        dirs = []
        for group in self.file_groups:
            if group.virtual or group.disabled:
                continue
            for source in group.files:
                parent = os.path.dirname(self.to_absolute_path(source.path))
                if parent not in dirs:
                    dirs.append(parent)
        return dirs

    def get_source_extra_args(self) -> Optional[Dict[str, Any]]:
        """
        Read the per-file option table.

        The table is a JSON document with two optional objects, ``files``
        (matched against real relative paths) and ``virtualPathFiles``
        (matched against virtual paths), each mapping a glob pattern to an
        extra command line fragment.

        Returns:
            Parsed table, or None when the file does not exist

        Raises:
            ProjectConfigError: If the file exists but is not valid JSON
        """
        path = Path(self.to_absolute_path(self.source_extra_args_file))
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ProjectConfigError(f"Invalid JSON in {path}: {e}") from e

    def get_source_extra_args_mtime(self) -> Optional[float]:
        path = Path(self.to_absolute_path(self.source_extra_args_file))
        if not path.is_file():
            return None
        return path.stat().st_mtime * 1000

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "toolchain": self.toolchain,
            "outDir": self.out_dir,
            "sourceExtraArgsFile": self.source_extra_args_file,
            "groups": [
                {
                    "name": g.name,
                    "disabled": g.disabled,
                    "virtual": g.virtual,
                    "files": [{"path": f.path, "disabled": f.disabled} for f in g.files],
                }
                for g in self.file_groups
            ],
            "dependenceList": [
                {
                    "groupName": g.name,
                    "depList": [
                        {
                            "name": d.name,
                            "incList": d.inc_list,
                            "libList": d.lib_list,
                            "defineList": d.define_list,
                        }
                        for d in g.depend_list
                    ],
                }
                for g in self.dependence_groups
                if g.name != BUILT_IN_GROUP
            ],
            "compileConfig": _compile_config_to_dict(self.compile_config),
            "env": self.env,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root_dir: Path) -> "ProjectConfig":
        try:
            project_type = ProjectType(data.get("type", "ARM"))
        except ValueError as e:
            raise ProjectConfigError(f"Unknown project type: {data.get('type')}") from e

        try:
            groups = [
                FileGroup(
                    name=g["name"],
                    disabled=bool(g.get("disabled", False)),
                    virtual=bool(g.get("virtual", False)),
                    files=[
                        SourceFile(f["path"], bool(f.get("disabled", False)))
                        for f in g.get("files", [])
                    ],
                )
                for g in data.get("groups", [])
            ]
            dep_groups = [
                DependenceGroup(
                    name=g["groupName"],
                    depend_list=[
                        Dependence(
                            name=d["name"],
                            inc_list=list(d.get("incList", [])),
                            lib_list=list(d.get("libList", [])),
                            define_list=list(d.get("defineList", [])),
                        )
                        for d in g.get("depList", [])
                    ],
                )
                for g in data.get("dependenceList", [])
            ]
        except (KeyError, TypeError) as e:
            raise ProjectConfigError(f"Malformed project file: {e}") from e

        return cls(
            name=data.get("name", "project"),
            type=project_type,
            root_dir=root_dir,
            toolchain=data.get("toolchain", "None"),
            out_dir=data.get("outDir", "build"),
            file_groups=groups,
            dependence_groups=dep_groups,
            compile_config=_compile_config_from_dict(project_type, data.get("compileConfig", {})),
            source_extra_args_file=data.get("sourceExtraArgsFile", "files.options.json"),
            env=dict(data.get("env", {})),
        )

    @classmethod
    def load(cls, project_dir: Path) -> "ProjectConfig":
        """
        Load a project from its directory.

        Args:
            project_dir: Directory holding project.json

        Returns:
            ProjectConfig instance

        Raises:
            ProjectConfigError: If project.json is missing or malformed
        """
        project_dir = Path(project_dir).resolve()
        path = project_dir / PROJECT_FILE_NAME
        if not path.exists():
            raise ProjectConfigError(f"{PROJECT_FILE_NAME} not found in {project_dir}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ProjectConfigError(f"Invalid JSON in {path}: {e}") from e

        return cls.from_dict(data, project_dir)

    def save(self, project_dir: Optional[Path] = None) -> Path:
        project_dir = Path(project_dir) if project_dir else self.root_dir
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / PROJECT_FILE_NAME
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=4)
        logging.debug(f"Project saved to {path}")
        return path
