"""Source list and per-file option collection."""

import fnmatch
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config.project import VIRTUAL_ROOT, ProjectConfig, ProjectConfigError

SOURCE_EXTENSIONS = (".c", ".cpp", ".c++", ".cxx", ".cc", ".s", ".asm", ".a51", ".lib", ".a", ".o", ".obj")


def is_source_file(path: str) -> bool:
    return path.lower().endswith(SOURCE_EXTENSIONS)


@dataclass
class SourceEntry:
    path: str
    virtual_path: Optional[str] = None


@dataclass
class SourceInfo:
    sources: List[str]
    params: Dict[str, str]
    params_mtime: Optional[float] = None


def _search_path(path: str) -> str:
    return path.replace("\\", "/").replace("../", "").replace("./", "")


class SourceCollector:
    """Collects the enabled sources of a project and their extra flags."""

    def __init__(self, project: ProjectConfig):
        self.project = project

    def collect_entries(self) -> List[SourceEntry]:
        """
        List the enabled source files.

        Disabled groups and disabled files are skipped, as are files whose
        extension is not a source extension. Files of virtual groups also
        get a virtual path, ``<group>/<file name>`` relative to the
        virtual root. A file listed twice is kept once.

        Returns:
            Entries in group order
        """
        entries = []
        seen = set()
        for group in self.project.file_groups:
            if group.disabled:
                continue
            for source in group.files:
                if source.disabled or not is_source_file(source.path):
                    continue
                path = self.project.to_relative_path(source.path)
                if path in seen:
                    continue
                seen.add(path)
                entry = SourceEntry(path)
                if group.virtual:
                    file_name = source.path.replace("\\", "/").rsplit("/", 1)[-1]
                    entry.virtual_path = f"{group.name}/{file_name}".replace(f"{VIRTUAL_ROOT}/", "")
                entries.append(entry)
        return entries

    @staticmethod
    def _match(entries: List[SourceEntry], patterns: Dict[str, Any], field_name: str,
               params: Dict[str, str]) -> None:
        for entry in entries:
            value = getattr(entry, field_name)
            if not value:
                continue
            search_path = _search_path(value)
            for expr, flags in patterns.items():
                if not fnmatch.fnmatchcase(search_path, expr):
                    continue
                flags = (flags or "").strip()
                if not flags:
                    continue
                if params.get(entry.path):
                    params[entry.path] += f" {flags}"
                else:
                    params[entry.path] = flags

    def collect(self, prev_params: Optional[Dict[str, str]] = None) -> SourceInfo:
        """
        Collect the source list and the per-file extra flags.

        Patterns of the ``virtualPathFiles`` table are matched against
        virtual paths first, then those of ``files`` against real paths.
        A file that had non-empty flags in the previous request but none
        now gets an explicit "" so the builder recompiles it.

        Args:
            prev_params: sourceParams of the previous request

        Returns:
            SourceInfo with a sorted, de-duplicated source list
        """
        entries = self.collect_entries()
        params: Dict[str, str] = {}

        try:
            table = self.project.get_source_extra_args()
            if table:
                if isinstance(table.get("virtualPathFiles"), dict):
                    self._match(entries, table["virtualPathFiles"], "virtual_path", params)
                if isinstance(table.get("files"), dict):
                    self._match(entries, table["files"], "path", params)
        except (ProjectConfigError, AttributeError, TypeError) as e:
            logging.warning(f"Append files options failed !, msg: {e}")
            params = {}

        for path, old_value in (prev_params or {}).items():
            if path not in params and old_value:
                params[path] = ""

        return SourceInfo(
            sources=sorted(e.path for e in entries),
            params=params,
            params_mtime=self.project.get_source_extra_args_mtime(),
        )
