"""
Keil uVision project translator.

Imports ``.uvprojx`` (ARM) and ``.uvproj`` (C51) projects into the
abstract project model and exports the model back into an existing
uVision document. The parsed element tree is kept and mutated in place
on export, so elements the translator never looks at are written back
unchanged.
"""

import copy
import logging
import math
import os
import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..build.scatter import InvalidMemoryLayoutError, slot_index
from ..config.project import (
    VIRTUAL_ROOT,
    ArmCompileConfig,
    C51CompileConfig,
    CompileConfig,
    Dependence,
    DependenceGroup,
    FileGroup,
    ProjectConfig,
    ProjectType,
    SourceFile,
    StorageLayout,
)
from ..toolchains.base import ToolchainName
from .mapper import KeilSettingMapper

XML_HEADER = '<?xml version="1.0" encoding="UTF-8" standalone="no" ?>'

TYPE_SUFFIX_MAP = {
    ProjectType.ARM: ".uvprojx",
    ProjectType.C51: ".uvproj",
}

ARM_VARIANTS = [ToolchainName.AC5, ToolchainName.AC6]

IMPORT_GROUP_NAME = "custom"
RTE_GROUP_NAME = "RTE"
TOOLCHAIN_DEP_ID = "built-in.toolchain"
RTE_DEP_ID = f"{RTE_GROUP_NAME}.components"
RTE_GROUP_PREFIX = f"{VIRTUAL_ROOT}/{RTE_GROUP_NAME}/"

RAM_CHECK_TAGS = ["Ra1Chk", "Ra2Chk", "Ra3Chk", "Im1Chk", "Im2Chk"]
ROM_CHECK_TAGS = ["Ro1Chk", "Ro2Chk", "Ro3Chk", "Ir1Chk", "Ir2Chk"]

FPU_FROM_KEIL = {"1": "none", "2": "single", "3": "double"}
FPU_TO_KEIL = {"single": "2", "double": "3"}

MEMORY_MODEL_FROM_KEIL = {"0": "SMALL", "1": "COMPACT", "2": "LARGE"}
MEMORY_MODEL_TO_KEIL = {v: k for k, v in MEMORY_MODEL_FROM_KEIL.items()}

DEFAULT_STARTUP_INDEX = 3

_MACRO_NAME = re.compile(r"^[_a-z]", re.IGNORECASE)
_DRIVE_PATH = re.compile(r"^[a-zA-Z]:")


class LegacyParseError(Exception):
    """Exception raised for uVision documents that cannot be translated."""

    pass


# ----------------------------------------------------------------------
# element helpers
# ----------------------------------------------------------------------


def get_element_text(element: Optional[ET.Element], path: str, default: Optional[str] = None) -> Optional[str]:
    """Get the text of a sub-element; an empty element gives ''."""
    if element is None:
        return default
    node = element.find(path)
    if node is None:
        return default
    return node.text or ""


def ensure_element(parent: ET.Element, path: str) -> ET.Element:
    """Find a sub-element by a '/'-separated path, creating missing steps."""
    node = parent
    for tag in path.split("/"):
        child = node.find(tag)
        if child is None:
            child = ET.SubElement(node, tag)
        node = child
    return node


def set_element_text(parent: ET.Element, path: str, text: str) -> ET.Element:
    node = ensure_element(parent, path)
    node.text = text
    return node


# ----------------------------------------------------------------------
# value helpers
# ----------------------------------------------------------------------


def split_path_separator(text: Optional[str], sep: str = ";") -> List[str]:
    """Split a uVision path list, dropping empty entries."""
    result = []
    for value in (text or "").split(sep):
        value = value.strip()
        if value:
            result.append(value)
    return result


def parse_macro_string(text: Optional[str]) -> List[str]:
    """
    Split a uVision define list into macros.

    Splits on spaces and commas outside of quotes. Single-quote delimiters
    are normalized to double quotes, an escaped quote does not open or close
    a string, and tokens that do not start with a letter or '_' are dropped.

    Example:
        parse_macro_string("A=1, B='x y'") == ["A=1", 'B="x y"']
    """
    result: List[str] = []
    stack: List[str] = []

    def push(token: str) -> None:
        macro = token.strip()
        if macro and _MACRO_NAME.match(macro):
            result.append(macro)

    text = text or ""
    current = ""
    for index, char in enumerate(text):
        prev = text[index - 1] if index > 0 else ""

        if char in ('"', "'"):
            if prev != "\\":
                if stack:
                    if stack[-1] == char:
                        stack.pop()
                        if char == "'":
                            char = '"'
                else:
                    stack.append(char)
                    if char == "'":
                        char = '"'
        elif char in (" ", ","):
            if not stack:
                push(current)
                current = ""
                continue

        current += char

    push(current)
    return result


def judge_file_type(path: str) -> int:
    """uVision FileType code: 1 C, 2 assembly, 8 C++, 5 anything else."""
    suffix = os.path.splitext(path)[1].lower()
    if suffix == ".c":
        return 1
    if suffix in (".s", ".a51"):
        return 2
    if suffix == ".cpp":
        return 8
    return 5


def fix_group_name(name: str) -> str:
    """'/Drivers\\HAL' -> 'Drivers/HAL'"""
    name = re.sub(r"^[\\/]+", "", name.strip())
    return re.sub(r"\\+", "/", name)


def is_disabled(element: ET.Element, option_tag: str) -> bool:
    """Check ``<option_tag>/CommonProperty/IncludeInBuild == '0'``."""
    return get_element_text(element, f"{option_tag}/CommonProperty/IncludeInBuild") == "0"


def set_disable_flag(element: ET.Element, option_tag: str, disabled: bool) -> None:
    """Mark an element excluded from the build; enabled elements are left alone."""
    if disabled:
        set_element_text(element, f"{option_tag}/CommonProperty/IncludeInBuild", "0")


def _dedup(items: List[str]) -> List[str]:
    result = []
    for item in items:
        if item not in result:
            result.append(item)
    return result


# ----------------------------------------------------------------------
# results
# ----------------------------------------------------------------------


@dataclass
class RteDependence:
    """One RTE component file recorded in the uVision project."""

    path: str
    category: Optional[str] = None
    class_name: Optional[str] = None
    pack_path: Optional[str] = None
    instance: List[str] = field(default_factory=list)


@dataclass
class KeilParserResult:
    """
    One imported uVision target.

    Attributes:
        name: Target name
        type: Project family
        device: Device name
        vendor: Device vendor
        inc_list: Absolute include directories
        define_list: Macros
        file_groups: Groups holding absolute file paths
        toolchain: Toolchain the target builds with
        options_group: Imported option values per toolchain name
        compile_config: Target-specific configuration
        include_folder: C51 register header directory
        rte_deps: RTE components, shared by all targets of a document
    """

    name: str
    type: ProjectType
    device: str
    vendor: str
    inc_list: List[str]
    define_list: List[str]
    file_groups: List[FileGroup]
    toolchain: ToolchainName
    options_group: Dict[str, Dict[str, Any]]
    compile_config: CompileConfig
    include_folder: str = ""
    rte_deps: List[RteDependence] = field(default_factory=list)

    def to_project(self, root_dir: Union[str, Path], out_dir: str = "build") -> ProjectConfig:
        """
        Build a project from the imported target.

        Keil groups become virtual groups. Include directories and macros
        go to a ``custom`` dependence group; RTE instance files go to
        virtual groups under ``RTE``.
        """
        project = ProjectConfig(
            name=self.name,
            type=self.type,
            root_dir=Path(root_dir),
            toolchain=self.toolchain.value,
            out_dir=out_dir,
            compile_config=copy.deepcopy(self.compile_config),
        )

        if isinstance(project.compile_config, ArmCompileConfig) and project.compile_config.scatter_file_path:
            project.compile_config.scatter_file_path = project.to_relative_path(
                project.compile_config.scatter_file_path
            )

        for group in self.file_groups:
            project.file_groups.append(
                FileGroup(
                    name=f"{VIRTUAL_ROOT}/{group.name}",
                    disabled=group.disabled,
                    virtual=True,
                    files=[SourceFile(project.to_relative_path(f.path), f.disabled) for f in group.files],
                )
            )

        inc_list = list(self.inc_list)
        if self.include_folder:
            inc_list.append(self.include_folder)
        project.dependence_groups.append(
            DependenceGroup(
                IMPORT_GROUP_NAME,
                [Dependence("default", [project.to_relative_path(p) for p in _dedup(inc_list)], [],
                            list(self.define_list))],
            )
        )

        rte_groups: Dict[str, FileGroup] = {}
        rte_inc: List[str] = []
        for dep in self.rte_deps:
            if not dep.instance:
                continue
            group_name = f"{RTE_GROUP_PREFIX}{dep.class_name or dep.category or 'Component'}"
            group = rte_groups.setdefault(group_name, FileGroup(group_name, virtual=True))
            for path in dep.instance:
                rel = project.to_relative_path(path)
                if all(f.path != rel for f in group.files):
                    group.files.append(SourceFile(rel))
                inc = project.to_relative_path(os.path.dirname(path))
                if inc not in rte_inc:
                    rte_inc.append(inc)
        if rte_groups:
            project.file_groups.extend(rte_groups.values())
            project.dependence_groups.append(
                DependenceGroup(RTE_GROUP_NAME, [Dependence("components", rte_inc)])
            )

        return project

    def merged_options(self, toolchain: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay the imported values of a toolchain on its default option set."""
        options = copy.deepcopy(defaults)
        for category, values in self.options_group.get(toolchain, {}).items():
            options.setdefault(category, {}).update(values)
        return options


# ----------------------------------------------------------------------
# parsers
# ----------------------------------------------------------------------


class KeilParser(ABC):
    """Base translator for one uVision document.

    Attributes:
        path: Absolute path of the document
        keil_dir: Directory relative paths in the document resolve against
        warnings: Messages of option translations that failed
    """

    TYPE_TAG: ProjectType

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).resolve()
        self.keil_dir = self.path.parent
        self.warnings: List[str] = []

        try:
            self.tree = ET.parse(self.path)
        except ET.ParseError as e:
            raise LegacyParseError(f"Invalid XML in {self.path}: {e}") from e

        self.root = self.tree.getroot()
        self.targets = self.root.findall("Targets/Target") if self.root.tag == "Project" else []
        if not self.targets:
            raise LegacyParseError(f"No Project/Targets/Target found in {self.path}")

    @staticmethod
    def get_project_type(path: Union[str, Path]) -> ProjectType:
        if str(path).lower().endswith(".uvproj"):
            return ProjectType.C51
        return ProjectType.ARM

    @staticmethod
    def open(path: Union[str, Path]) -> "KeilParser":
        """
        Open a uVision document with the parser of its family.

        Raises:
            LegacyParseError: If the document is not a uVision project
        """
        if KeilParser.get_project_type(path) == ProjectType.C51:
            return C51Parser(path)
        return ARMParser(path)

    # ------------------------------------------------------------------
    # paths
    # ------------------------------------------------------------------

    def to_absolute_path(self, path: str) -> str:
        """Resolve a document path against the document's directory."""
        if _DRIVE_PATH.match(path):
            return path
        normalized = path.replace("\\", "/")
        if os.path.isabs(normalized):
            return os.path.normpath(normalized)
        return os.path.normpath(os.path.join(str(self.keil_dir), normalized))

    @staticmethod
    def to_keil_path(path: str, keil_dir: Path) -> str:
        """Express an absolute path relative to ``keil_dir``, Windows style."""
        try:
            rel = os.path.relpath(path, str(keil_dir))
        except ValueError:
            return path
        rel = rel.replace("/", "\\")
        if not rel.startswith("."):
            rel = ".\\" + rel
        return rel

    # ------------------------------------------------------------------
    # shared parse / export steps
    # ------------------------------------------------------------------

    @staticmethod
    def _target_option(target: ET.Element) -> ET.Element:
        option = target.find("TargetOption")
        return option if option is not None else ET.Element("TargetOption")

    def _warn(self, message: str, error: Exception) -> None:
        logging.error(f"{message}: {error}")
        self.warnings.append(message)

    def _parse_groups(self, target: ET.Element) -> List[FileGroup]:
        groups = []
        for group_node in target.findall("Groups/Group"):
            group = FileGroup(
                name=fix_group_name(get_element_text(group_node, "GroupName", "")),
                disabled=is_disabled(group_node, "GroupOption"),
            )
            # several Files nodes within one group are combined
            for files_node in group_node.findall("Files"):
                for file_node in files_node.findall("File"):
                    file_path = get_element_text(file_node, "FilePath")
                    if file_path is None:
                        continue
                    group.files.append(
                        SourceFile(self.to_absolute_path(file_path), is_disabled(file_node, "FileOption"))
                    )
            groups.append(group)
        return groups

    def _write_groups(self, target: ET.Element, project: ProjectConfig, keil_dir: Path) -> None:
        groups_node = ensure_element(target, "Groups")
        for old in groups_node.findall("Group"):
            groups_node.remove(old)

        for group in project.file_groups:
            # RTE components stay in the document's RTE block
            if group.name.startswith(RTE_GROUP_PREFIX):
                continue
            group_node = ET.SubElement(groups_node, "Group")
            ET.SubElement(group_node, "GroupName").text = group.name.replace(f"{VIRTUAL_ROOT}/", "")
            files_node = ET.SubElement(group_node, "Files")

            for source in group.files:
                abs_path = project.to_absolute_path(source.path)
                file_node = ET.SubElement(files_node, "File")
                ET.SubElement(file_node, "FileName").text = os.path.basename(abs_path)
                ET.SubElement(file_node, "FileType").text = str(judge_file_type(abs_path))
                ET.SubElement(file_node, "FilePath").text = self.to_keil_path(abs_path, keil_dir)
                set_disable_flag(file_node, "FileOption", source.disabled)

            set_disable_flag(group_node, "GroupOption", group.disabled)

    def _write_common(
        self,
        target: ET.Element,
        project: ProjectConfig,
        device: Optional[str],
        vendor: Optional[str],
        default_includes: Optional[List[str]],
        keil_dir: Path,
    ) -> Tuple[str, str]:
        """
        Overwrite target name, device, output paths.

        Returns:
            (include path string, define string) in uVision format
        """
        option = ensure_element(target, "TargetOption")
        merged = project.get_all_merge_dep([TOOLCHAIN_DEP_ID, RTE_DEP_ID])
        inc_list = _dedup(
            [project.to_absolute_path(p) for p in merged.inc_list]
            + list(default_includes or [])
            + project.get_source_include_list()
        )

        set_element_text(target, "TargetName", project.name)
        if device is not None:
            set_element_text(option, "TargetCommonOption/Device", device)
        if vendor is not None:
            set_element_text(option, "TargetCommonOption/Vendor", vendor)

        out_folder = os.path.normpath(project.out_dir).replace("/", "\\")
        set_element_text(option, "TargetCommonOption/OutputDirectory", f".\\{out_folder}\\Keil\\")
        set_element_text(option, "TargetCommonOption/ListingPath", f".\\{out_folder}\\Keil\\")
        set_element_text(option, "TargetCommonOption/OutputName", project.name)

        inc_text = ";".join(self.to_keil_path(p, keil_dir) for p in inc_list)
        define_text = ",".join(merged.define_list)
        return inc_text, define_text

    def save(self, out_dir: Union[str, Path], name: str) -> Path:
        """
        Write the document as ``<out_dir>/<name><suffix>``.

        Returns:
            Path of the written file
        """
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_file = out_dir / f"{name}{TYPE_SUFFIX_MAP[self.TYPE_TAG]}"

        ET.indent(self.root, space="  ")
        body = ET.tostring(self.root, encoding="unicode")
        with open(out_file, "w", encoding="utf-8") as f:
            f.write(XML_HEADER + "\n" + body + "\n")

        logging.info(f"uVision project written to {out_file}")
        return out_file

    @abstractmethod
    def parse(self) -> List[KeilParserResult]:
        """Parse every target of the document."""
        pass

    @abstractmethod
    def set_keil_xml(
        self,
        project: ProjectConfig,
        toolchain: ToolchainName,
        options: Dict[str, Any],
        device: Optional[str] = None,
        vendor: Optional[str] = None,
        default_includes: Optional[List[str]] = None,
        keil_dir: Optional[Path] = None,
    ) -> None:
        """Overwrite the first target of the document with a project."""
        pass


class C51Parser(KeilParser):
    """Translator for ``.uvproj`` (8051) documents."""

    TYPE_TAG = ProjectType.C51

    DEFAULT_DEVICE = "AT89C52"
    DEFAULT_VENDOR = "Atmel"

    def _read_options(self, option: ET.Element) -> Dict[str, Dict[str, Any]]:
        values: Dict[str, Any] = {"global": {}, "c/cpp-compiler": {}, "asm-compiler": {}, "linker": {}}

        try:
            misc = option.find("Target51/Target51Misc")
            if misc is not None:
                ram_mode = MEMORY_MODEL_FROM_KEIL.get(get_element_text(misc, "MemoryModel", ""))
                if ram_mode:
                    values["global"]["ram-mode"] = ram_mode
                rom_mode = MEMORY_MODEL_FROM_KEIL.get(get_element_text(misc, "RomSize", ""))
                if rom_mode:
                    values["global"]["rom-mode"] = rom_mode

            c51 = option.find("Target51/C51")
            if c51 is not None:
                compiler = values["c/cpp-compiler"]
                compiler["optimization-type"] = "SIZE" if get_element_text(c51, "SizeSpeed") == "0" else "SPEED"
                compiler["optimization-level"] = "level-" + (get_element_text(c51, "Optimize") or "8")
        except (AttributeError, TypeError, ValueError) as e:
            self._warn("Import compile options failed! Please complete the setup manually", e)

        return {ToolchainName.KEIL_C51.value: values}

    def parse(self) -> List[KeilParserResult]:
        results = []
        for target in self.targets:
            option = self._target_option(target)
            include_folder = get_element_text(option, "TargetCommonOption/RegisterFilePath", "")
            results.append(
                KeilParserResult(
                    name=get_element_text(target, "TargetName", ""),
                    type=self.TYPE_TAG,
                    device=get_element_text(option, "TargetCommonOption/Device", ""),
                    vendor=get_element_text(option, "TargetCommonOption/Vendor", ""),
                    inc_list=[
                        self.to_absolute_path(p)
                        for p in split_path_separator(
                            get_element_text(option, "Target51/C51/VariousControls/IncludePath")
                        )
                    ],
                    define_list=parse_macro_string(
                        get_element_text(option, "Target51/C51/VariousControls/Define")
                    ),
                    file_groups=self._parse_groups(target),
                    toolchain=ToolchainName.KEIL_C51,
                    options_group=self._read_options(option),
                    compile_config=C51CompileConfig(),
                    include_folder=re.sub(r"[\\/]$", "", include_folder),
                )
            )
        return results

    def _write_options(self, option: ET.Element, options: Dict[str, Any]) -> None:
        glob = options.get("global") or {}
        misc = option.find("Target51/Target51Misc")
        if misc is not None:
            set_element_text(misc, "MemoryModel", MEMORY_MODEL_TO_KEIL.get(glob.get("ram-mode"), "2"))
            set_element_text(misc, "RomSize", MEMORY_MODEL_TO_KEIL.get(glob.get("rom-mode"), "2"))

        try:
            c51 = option.find("Target51/C51")
            if c51 is not None:
                compiler = options.get("c/cpp-compiler") or {}
                set_element_text(c51, "SizeSpeed", "0" if compiler.get("optimization-type") == "SIZE" else "1")
                level = (compiler.get("optimization-level") or "").replace("level-", "")
                set_element_text(c51, "Optimize", level or "8")
        except (AttributeError, TypeError) as e:
            self._warn("Export compile options failed! Please complete the setup in Keil manually", e)

    def set_keil_xml(
        self,
        project: ProjectConfig,
        toolchain: ToolchainName,
        options: Dict[str, Any],
        device: Optional[str] = None,
        vendor: Optional[str] = None,
        default_includes: Optional[List[str]] = None,
        keil_dir: Optional[Path] = None,
    ) -> None:
        """
        Overwrite the first target with a C51 project.

        Args:
            project: Project to export
            toolchain: Resolved toolchain of the project
            options: Current option set of the toolchain
            device: Device name, AT89C52 if not given
            vendor: Device vendor, Atmel if not given
            default_includes: Toolchain default include directories
            keil_dir: Directory the written paths are relative to,
                the project root if not given
        """
        keil_dir = Path(keil_dir) if keil_dir else project.root_dir
        target = self.targets[0]
        option = ensure_element(target, "TargetOption")

        if device is None:
            device, vendor = self.DEFAULT_DEVICE, self.DEFAULT_VENDOR

        inc_text, define_text = self._write_common(
            target, project, device, vendor, default_includes, keil_dir
        )
        set_element_text(option, "Target51/C51/VariousControls/IncludePath", inc_text)
        set_element_text(option, "Target51/C51/VariousControls/Define", define_text)

        self._write_options(option, options)
        self._write_groups(target, project, keil_dir)


class ARMParser(KeilParser):
    """Translator for ``.uvprojx`` (ARM) documents."""

    TYPE_TAG = ProjectType.ARM

    def _read_options(self, option: ET.Element, config: ArmCompileConfig) -> Dict[str, Dict[str, Any]]:
        options_group: Dict[str, Dict[str, Any]] = {}

        try:
            ads = option.find("TargetArmAds")
            if ads is None:
                raise LegacyParseError("Not found Keil option 'TargetArmAds'")

            for variant in ARM_VARIANTS:
                mapper = KeilSettingMapper.get(variant.value)
                data = options_group[variant.value] = {}
                for group_name in mapper.get_group_list():
                    values = data.setdefault(group_name, {})
                    for key in mapper.get_option_key_list(group_name):
                        value = mapper.from_keil(option, group_name, key)
                        if value is not None:
                            values[key] = value

            ld = ads.find("LDads")
            if ld is not None:
                config.use_custom_scatter_file = get_element_text(ld, "umfTarg") != "1"
                scatter = get_element_text(ld, "ScatterFile")
                if scatter:
                    config.scatter_file_path = self.to_absolute_path(scatter)

            misc = ads.find("ArmAdsMisc")
            if misc is not None:
                cpu = get_element_text(misc, "AdsCpuType")
                if cpu:
                    config.cpu_type = cpu.replace('"', "")
                config.floating_point_hardware = FPU_FROM_KEIL.get(
                    (get_element_text(misc, "RvdsVP") or "").strip(), "none"
                )
                config.storage_layout = self._read_layout(misc)
        except (LegacyParseError, AttributeError, KeyError, TypeError, ValueError) as e:
            self._warn("Import compile options failed! Please complete the setup manually", e)

        return options_group

    @staticmethod
    def _read_layout(misc: ET.Element) -> StorageLayout:
        layout = StorageLayout.default()

        try:
            startup = int(get_element_text(misc, "StupSel") or "0")
        except ValueError:
            startup = 0
        index = int(math.log2(startup)) if startup > 0 and startup & (startup - 1) == 0 else -1
        if not 0 <= index < len(layout.rom):
            index = DEFAULT_STARTUP_INDEX
        layout.rom[index].is_startup = True

        for i, region in enumerate(layout.ram):
            region.no_init = get_element_text(misc, f"NoZi{i + 1}", "0") != "0"
            region.selected = get_element_text(misc, RAM_CHECK_TAGS[i], "0") != "0"
        for i, region in enumerate(layout.rom):
            region.selected = get_element_text(misc, ROM_CHECK_TAGS[i], "0") != "0"

        chip = misc.find("OnChipMemories")
        if chip is not None:
            # OCR_RVCT1-5 hold the ROM slots, OCR_RVCT6-10 the RAM slots
            for offset, regions in ((1, layout.rom), (6, layout.ram)):
                for i, region in enumerate(regions):
                    node = chip.find(f"OCR_RVCT{i + offset}")
                    if node is not None:
                        region.start_addr = get_element_text(node, "StartAddress") or region.start_addr
                        region.size = get_element_text(node, "Size") or region.size

        return layout

    def _parse_rte(self) -> List[RteDependence]:
        deps = []
        for files_node in self.root.findall("RTE/files"):
            for file_node in files_node.findall("file"):
                dep = RteDependence(path=file_node.get("name", ""), category=file_node.get("category"))

                component = file_node.find("component")
                if component is not None:
                    dep.class_name = component.get("Cclass")

                package = file_node.find("package")
                if package is not None:
                    parts = [package.get("vendor"), package.get("name"), package.get("version")]
                    if all(parts):
                        dep.pack_path = os.path.join(*parts)

                dep.instance = [
                    self.to_absolute_path(node.text.strip())
                    for node in file_node.findall("instance")
                    if node.text and node.text.strip()
                ]
                deps.append(dep)
        return deps

    def parse(self) -> List[KeilParserResult]:
        results = []
        for target in self.targets:
            option = self._target_option(target)
            config = ArmCompileConfig()
            results.append(
                KeilParserResult(
                    name=get_element_text(target, "TargetName", ""),
                    type=self.TYPE_TAG,
                    device=get_element_text(option, "TargetCommonOption/Device", ""),
                    vendor=get_element_text(option, "TargetCommonOption/Vendor", ""),
                    inc_list=[
                        self.to_absolute_path(p)
                        for p in split_path_separator(
                            get_element_text(option, "TargetArmAds/Cads/VariousControls/IncludePath")
                        )
                    ],
                    define_list=parse_macro_string(
                        get_element_text(option, "TargetArmAds/Cads/VariousControls/Define")
                    ),
                    file_groups=self._parse_groups(target),
                    toolchain=ToolchainName.AC6 if get_element_text(target, "uAC6") == "1" else ToolchainName.AC5,
                    options_group=self._read_options(option, config),
                    compile_config=config,
                )
            )

        rte_deps = self._parse_rte()
        for result in results:
            result.rte_deps = list(rte_deps)

        return results

    def _write_options(
        self,
        option: ET.Element,
        project: ProjectConfig,
        toolchain: ToolchainName,
        options: Dict[str, Any],
        keil_dir: Path,
    ) -> None:
        config: ArmCompileConfig = project.compile_config

        try:
            ads = option.find("TargetArmAds")
            if ads is None:
                raise LegacyParseError("Not found Keil option 'TargetArmAds'")

            # the other variant first, so the current one wins on shared fields
            variants = []
            if toolchain in ARM_VARIANTS:
                variants = [v for v in ARM_VARIANTS if v != toolchain] + [toolchain]
            for variant in variants:
                mapper = KeilSettingMapper.get(variant.value)
                for group_name in mapper.get_group_list():
                    for key, value in (options.get(group_name) or {}).items():
                        mapper.to_keil(option, group_name, key, value)

            ld = ads.find("LDads")
            if ld is not None:
                set_element_text(ld, "umfTarg", "0" if config.use_custom_scatter_file else "1")
                scatter = ""
                if config.scatter_file_path:
                    scatter = self.to_keil_path(project.to_absolute_path(config.scatter_file_path), keil_dir)
                set_element_text(ld, "ScatterFile", scatter)

            misc = ads.find("ArmAdsMisc")
            if misc is not None:
                set_element_text(misc, "AdsCpuType", f'"{config.cpu_type}"')
                set_element_text(misc, "RvdsVP", FPU_TO_KEIL.get(config.floating_point_hardware, "1"))
                self._write_layout(misc, config.storage_layout)
        except (LegacyParseError, InvalidMemoryLayoutError, AttributeError, KeyError, TypeError, ValueError) as e:
            self._warn("Export compile options failed! Please complete the setup in Keil manually", e)

    @staticmethod
    def _write_layout(misc: ET.Element, layout: StorageLayout) -> None:
        startup = next((slot_index(r) for r in layout.rom if r.is_startup), DEFAULT_STARTUP_INDEX)
        set_element_text(misc, "StupSel", str(2 ** startup))

        for tag in RAM_CHECK_TAGS + ROM_CHECK_TAGS:
            set_element_text(misc, tag, "0")

        chip = ensure_element(misc, "OnChipMemories")
        for i in range(1, 11):
            set_element_text(chip, f"OCR_RVCT{i}/StartAddress", "0x0")
            set_element_text(chip, f"OCR_RVCT{i}/Size", "0x0")

        for region in layout.ram:
            index = slot_index(region)
            set_element_text(misc, f"NoZi{index + 1}", "1" if region.no_init else "0")
            set_element_text(misc, RAM_CHECK_TAGS[index], "1" if region.selected else "0")
            set_element_text(chip, f"OCR_RVCT{index + 6}/StartAddress", region.start_addr)
            set_element_text(chip, f"OCR_RVCT{index + 6}/Size", region.size)

        for region in layout.rom:
            index = slot_index(region)
            set_element_text(misc, ROM_CHECK_TAGS[index], "1" if region.selected else "0")
            set_element_text(chip, f"OCR_RVCT{index + 1}/StartAddress", region.start_addr)
            set_element_text(chip, f"OCR_RVCT{index + 1}/Size", region.size)

    def set_keil_xml(
        self,
        project: ProjectConfig,
        toolchain: ToolchainName,
        options: Dict[str, Any],
        device: Optional[str] = None,
        vendor: Optional[str] = None,
        default_includes: Optional[List[str]] = None,
        keil_dir: Optional[Path] = None,
    ) -> None:
        """
        Overwrite the first target with an ARM project.

        The current option set is written through the AC5 and AC6 tables,
        the current toolchain last. Device and vendor are kept from the
        document when not given.

        Args:
            project: Project to export
            toolchain: Resolved toolchain of the project
            options: Current option set of the toolchain
            device: Device name
            vendor: Device vendor
            default_includes: Toolchain default include directories
            keil_dir: Directory the written paths are relative to,
                the project root if not given
        """
        keil_dir = Path(keil_dir) if keil_dir else project.root_dir
        target = self.targets[0]
        option = ensure_element(target, "TargetOption")

        inc_text, define_text = self._write_common(
            target, project, device, vendor, default_includes, keil_dir
        )
        set_element_text(option, "TargetArmAds/Cads/VariousControls/IncludePath", inc_text)
        set_element_text(option, "TargetArmAds/Cads/VariousControls/Define", define_text)
        set_element_text(option, "TargetArmAds/Aads/VariousControls/Define", define_text)

        if toolchain in ARM_VARIANTS:
            set_element_text(target, "uAC6", "1" if toolchain == ToolchainName.AC6 else "0")

        self._write_options(option, project, toolchain, options, keil_dir)
        self._write_groups(target, project, keil_dir)
