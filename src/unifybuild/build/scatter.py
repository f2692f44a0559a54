"""
ARM scatter-loading description generator.

Converts the fixed five RAM / five ROM slot table of an ARM project into
an armlink scatter file. Slots are indexed 0-4 per kind: RAM1-3 / ROM1-3
take indexes 0-2, IRAM1-2 / IROM1-2 take indexes 3-4.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.project import MemoryRegion, StorageLayout

SLOT_COUNT = 5

BANNER = [
    "; ******************************************************************",
    "; *** Scatter-Loading Description File generated by unifybuild   ***",
    "; ******************************************************************",
]

STARTUP_SECTIONS = "*.o (RESET, +First) \n*(InRoot$$Sections) \n.ANY (+RO) \n.ANY (+XO) \n"
RW_SECTIONS = ".ANY (+RW +ZI) \n"
RO_SECTIONS = ".ANY (+RO) \n"


class InvalidMemoryLayoutError(Exception):
    """Raised when the slot table cannot produce a valid scatter file."""

    pass


def fill_hex_number(num: str) -> str:
    """
    Left-pad a ``0x`` hex literal to ten characters.

    Literals of ten or more characters are returned unchanged.

    Example:
        fill_hex_number("0x8000") == "0x00008000"
    """
    if len(num) >= 10:
        return num
    return "0x" + "0" * (10 - len(num)) + num[2:]


def slot_index(region: MemoryRegion) -> int:
    """
    Map a region's tag and 1-based id to its 0-based slot index.

    Raises:
        InvalidMemoryLayoutError: If the tag is unknown or the id is out of
            range for the tag
    """
    if region.tag in ("RAM", "ROM"):
        first, count = 0, 3
    elif region.tag in ("IRAM", "IROM"):
        first, count = 3, 2
    else:
        raise InvalidMemoryLayoutError(f"Unknown memory tag '{region.tag}'")

    if not 1 <= region.id <= count:
        raise InvalidMemoryLayoutError(f"Invalid {region.tag} id {region.id}, expected 1 to {count}")
    return first + region.id - 1


def rom_region_name(index: int, is_child: bool) -> str:
    prefix = "ER_" if is_child else "LR_"
    num = index + 1
    if num > 3:
        prefix += "I"
        num -= 3
    return f"{prefix}ROM{num}"


def ram_region_name(index: int) -> str:
    prefix = "RW_"
    num = index + 1
    if num > 3:
        prefix += "I"
        num -= 3
    return f"{prefix}RAM{num}"


@dataclass
class Slot:
    start_addr: str = "0x00000000"
    size: str = "0x00000000"
    selected: bool = False
    no_init: bool = False


@dataclass
class MemoryScatter:
    """Normalized slot table with the startup ROM index."""

    startup_index: int
    rom_list: List[Slot] = field(default_factory=list)
    ram_list: List[Slot] = field(default_factory=list)

    @classmethod
    def from_layout(cls, layout: StorageLayout) -> "MemoryScatter":
        """
        Build the slot table from a storage layout.

        Raises:
            InvalidMemoryLayoutError: On unknown tags, on zero or several
                startup ROMs, or if the startup ROM is not selected
        """
        scatter = cls(
            startup_index=-1,
            rom_list=[Slot() for _ in range(SLOT_COUNT)],
            ram_list=[Slot() for _ in range(SLOT_COUNT)],
        )

        for region in layout.ram:
            index = slot_index(region)
            scatter.ram_list[index] = Slot(
                start_addr=fill_hex_number(region.start_addr),
                size=fill_hex_number(region.size),
                selected=region.selected,
                no_init=region.no_init,
            )

        startup = []
        for region in layout.rom:
            index = slot_index(region)
            scatter.rom_list[index] = Slot(
                start_addr=fill_hex_number(region.start_addr),
                size=fill_hex_number(region.size),
                selected=region.selected,
            )
            if region.is_startup:
                startup.append(index)

        if not startup:
            raise InvalidMemoryLayoutError("No startup ROM region is set")
        if len(startup) > 1:
            names = ", ".join(rom_region_name(i, False)[3:] for i in startup)
            raise InvalidMemoryLayoutError(f"Only one startup ROM region is allowed, found: {names}")

        scatter.startup_index = startup[0]
        if not scatter.rom_list[scatter.startup_index].selected:
            raise InvalidMemoryLayoutError(
                f"{rom_region_name(scatter.startup_index, False)[3:]} is a startup ROM but it is not selected"
            )

        return scatter


@dataclass
class MemoryText:
    name: str
    addr: str
    content: str = ""
    children: List["MemoryText"] = field(default_factory=list)


class ScatterFileGenerator:
    """Renders a MemoryScatter as scatter-loading text."""

    def __init__(self, scatter: MemoryScatter):
        self.scatter = scatter

    @classmethod
    def from_layout(cls, layout: StorageLayout) -> "ScatterFileGenerator":
        return cls(MemoryScatter.from_layout(layout))

    def regions(self) -> List[MemoryText]:
        """Build the load region tree, startup region first."""
        scatter = self.scatter
        startup = scatter.rom_list[scatter.startup_index]
        addr = f" {startup.start_addr} {startup.size} "

        startup_region = MemoryText(rom_region_name(scatter.startup_index, False), addr)
        startup_region.children.append(
            MemoryText(rom_region_name(scatter.startup_index, True), addr, STARTUP_SECTIONS)
        )

        for index, ram in enumerate(scatter.ram_list):
            if ram.selected:
                attr = " UNINIT " if ram.no_init else " "
                startup_region.children.append(
                    MemoryText(ram_region_name(index), f" {ram.start_addr}{attr}{ram.size} ", RW_SECTIONS)
                )

        regions = [startup_region]

        for index, rom in enumerate(scatter.rom_list):
            if rom.selected and index != scatter.startup_index:
                rom_addr = f" {rom.start_addr} {rom.size} "
                regions.append(
                    MemoryText(
                        rom_region_name(index, False),
                        rom_addr,
                        children=[MemoryText(rom_region_name(index, True), rom_addr, RO_SECTIONS)],
                    )
                )

        return regions

    @staticmethod
    def _indent(lines: List[str]) -> List[str]:
        depth = 0
        result = []
        for line in lines:
            if line.endswith("}"):
                depth -= 1
            if depth > 0 and line.strip():
                line = "\t" * depth + line
            result.append(line)
            if line.endswith("{"):
                depth += 1
        return result

    def text(self) -> str:
        """Render the scatter file with LF line endings."""
        data = ""
        for region in self.regions():
            data += f"{region.name}{region.addr}{{\n"
            if region.children:
                for child in region.children:
                    data += f"{child.name}{child.addr}{{\n{child.content}}}\n"
            else:
                data += region.content
            data += "}\n\n"

        body = "\n".join(self._indent(data.split("\n")))
        return "\n".join(BANNER) + "\n\n" + body

    def write(self, path: Path) -> Path:
        """Write the scatter file with CRLF line endings."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\r\n") as f:
            f.write(self.text())
        return path


def generate_scatter_file(layout: StorageLayout, path: Path) -> Path:
    """
    Generate a scatter file for a storage layout.

    Raises:
        InvalidMemoryLayoutError: If the layout is invalid
    """
    return ScatterFileGenerator.from_layout(layout).write(path)


def max_memory_size(regions: List[MemoryRegion]) -> Optional[int]:
    """Sum the sizes of the selected regions; None if a size is not a number."""
    total = 0
    for region in regions:
        if region.selected:
            try:
                total += int(region.size, 16)
            except ValueError:
                return None
    return total
