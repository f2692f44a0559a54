"""
Builder parameter document.

BuilderParams is the fully resolved build request handed to the external
builder. It is written as ``<outDir>/builder.params``; the previous copy
is kept as ``builder.params.old`` and read back to decide whether a full
rebuild is needed.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

PARAMS_FILE_NAME = "builder.params"

# Attribute name to the builder's JSON key
_JSON_KEYS = {
    "name": "name",
    "target": "target",
    "toolchain": "toolchain",
    "toolchain_cfg_file": "toolchainCfgFile",
    "toolchain_location": "toolchainLocation",
    "build_mode": "buildMode",
    "show_repath_on_log": "showRepathOnLog",
    "thread_num": "threadNum",
    "dump_path": "dumpPath",
    "out_dir": "outDir",
    "root_dir": "rootDir",
    "ram": "ram",
    "rom": "rom",
    "source_list": "sourceList",
    "source_params": "sourceParams",
    "source_params_mtime": "sourceParamsMtime",
    "inc_dirs": "incDirs",
    "lib_dirs": "libDirs",
    "defines": "defines",
    "options": "options",
    "sha": "sha",
    "env": "env",
}


@dataclass
class BuilderParams:
    """One build request.

    Attributes:
        name: Project name
        target: Target name
        toolchain: Toolchain name
        toolchain_cfg_file: Builder model file of the toolchain
        toolchain_location: Toolchain install directory
        build_mode: '|'-joined mode flags, e.g. 'fast|multhread'
        out_dir: Output directory, relative to root_dir
        root_dir: Absolute project root
        source_list: Sorted, de-duplicated project-relative sources
        source_params: Extra flags per source; "" forces a recompile
        inc_dirs: Include directories
        lib_dirs: Library directories
        defines: Macro definitions
        options: Shaped option set
        sha: Content hash per option category
        env: Environment overrides
    """

    name: str
    target: str
    toolchain: str
    toolchain_cfg_file: str
    toolchain_location: str
    build_mode: str
    dump_path: str
    out_dir: str
    root_dir: str
    source_list: List[str] = field(default_factory=list)
    inc_dirs: List[str] = field(default_factory=list)
    lib_dirs: List[str] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    show_repath_on_log: Optional[bool] = None
    thread_num: Optional[int] = None
    ram: Optional[int] = None
    rom: Optional[int] = None
    source_params: Optional[Dict[str, str]] = None
    source_params_mtime: Optional[float] = None
    sha: Optional[Dict[str, str]] = None
    env: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the builder's JSON shape, omitting unset fields."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                data[_JSON_KEYS[f.name]] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=4)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuilderParams":
        kwargs = {}
        for attr, key in _JSON_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path) -> Optional["BuilderParams"]:
        """
        Read a params document.

        Returns:
            BuilderParams, or None if the file is missing or unusable
        """
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return cls.from_dict(json.load(f))
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logging.warning(f"Ignoring unreadable params file {path}: {e}")
            return None

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        return path
