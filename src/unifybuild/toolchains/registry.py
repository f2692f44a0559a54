"""Toolchain registry.

The registry is the process-scoped catalog of toolchain descriptors. It
resolves a (project type, toolchain name) pair to a descriptor, builds
and initializes each descriptor at most once, and drops cached
descriptors when the host settings they depend on change.

Descriptor construction is single-flight per toolchain name: concurrent
callers asking for the same toolchain wait on a per-name lock, so the
compiler is probed once.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Type, Union

from ..config.project import ProjectType
from ..config.settings import Settings
from .arm import AC5, AC6
from .base import ToolchainDescriptor, ToolchainName
from .c51 import SDCC, IARSTM8, KeilC51
from .gnu import GCC, RISCV_GCC


class UnknownToolchainError(Exception):
    """Raised when a toolchain name is not allowed for a project type."""

    pass


class ToolchainNotReadyError(Exception):
    """Raised when a toolchain installation is missing or misconfigured."""

    pass


DESCRIPTOR_CLASSES: Dict[ToolchainName, Type[ToolchainDescriptor]] = {
    ToolchainName.KEIL_C51: KeilC51,
    ToolchainName.SDCC: SDCC,
    ToolchainName.AC5: AC5,
    ToolchainName.AC6: AC6,
    ToolchainName.GCC: GCC,
    ToolchainName.IAR_STM8: IARSTM8,
    ToolchainName.RISCV_GCC: RISCV_GCC,
}

# Allowed toolchains per project type; the first entry is the default
TOOLCHAIN_ALLOW_LIST: Dict[ProjectType, List[ToolchainName]] = {
    ProjectType.C51: [ToolchainName.KEIL_C51, ToolchainName.SDCC, ToolchainName.IAR_STM8],
    ProjectType.ARM: [ToolchainName.AC5, ToolchainName.AC6, ToolchainName.GCC],
    ProjectType.RISCV: [ToolchainName.RISCV_GCC],
    ProjectType.ANY_GCC: [ToolchainName.GCC],
}

ChangeListener = Callable[[ToolchainName], None]


class ToolchainRegistry:
    """Process-scoped catalog of toolchain descriptors."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._descriptors: Dict[ToolchainName, ToolchainDescriptor] = {}
        self._locks_lock = threading.Lock()  # Master lock for the per-name locks
        self._name_locks: Dict[ToolchainName, threading.Lock] = {}
        self._listeners: List[ChangeListener] = []

    def _get_name_lock(self, name: ToolchainName) -> threading.Lock:
        with self._locks_lock:
            if name not in self._name_locks:
                self._name_locks[name] = threading.Lock()
            return self._name_locks[name]

    def get(self, name: ToolchainName) -> ToolchainDescriptor:
        """
        Get the descriptor for a toolchain, creating it on first use.

        Args:
            name: Toolchain name

        Returns:
            Initialized descriptor

        Raises:
            UnknownToolchainError: If no descriptor is registered for name
        """
        if name not in DESCRIPTOR_CLASSES:
            raise UnknownToolchainError(f"No descriptor registered for '{name.value}'")

        descriptor = self._descriptors.get(name)
        if descriptor is not None:
            return descriptor

        with self._get_name_lock(name):
            descriptor = self._descriptors.get(name)
            if descriptor is None:
                logging.debug(f"Initializing toolchain descriptor {name.value}")
                descriptor = DESCRIPTOR_CLASSES[name](self.settings)
                descriptor.initialize()
                self._descriptors[name] = descriptor
            return descriptor

    @staticmethod
    def _parse_project_type(project_type: Union[ProjectType, str]) -> ProjectType:
        if isinstance(project_type, ProjectType):
            return project_type
        try:
            return ProjectType(project_type)
        except ValueError as e:
            raise ValueError(f"Invalid project type '{project_type}'") from e

    def resolve_strict(
        self, project_type: Union[ProjectType, str], toolchain_name: str
    ) -> ToolchainDescriptor:
        """
        Resolve a toolchain without falling back.

        "None" selects the project type's default toolchain.

        Raises:
            UnknownToolchainError: If the name is not allowed for the type
            ValueError: If the project type is unknown
        """
        project_type = self._parse_project_type(project_type)
        allowed = TOOLCHAIN_ALLOW_LIST[project_type]

        name = ToolchainName.parse(toolchain_name)
        if name == ToolchainName.NONE:
            return self.get(allowed[0])
        if name is None or name not in allowed:
            raise UnknownToolchainError(
                f"Invalid toolchain name '{toolchain_name}' for project type '{project_type.value}'"
            )
        return self.get(name)

    def resolve(
        self, project_type: Union[ProjectType, str], toolchain_name: str
    ) -> ToolchainDescriptor:
        """
        Resolve a toolchain, falling back to the project type default.

        An unknown or disallowed name logs a warning and returns the
        default descriptor of the project type.

        Args:
            project_type: Project target family
            toolchain_name: Toolchain name as stored in the project

        Returns:
            Toolchain descriptor

        Raises:
            ValueError: If the project type is unknown
        """
        project_type = self._parse_project_type(project_type)
        try:
            return self.resolve_strict(project_type, toolchain_name)
        except UnknownToolchainError:
            logging.warning(f"Invalid toolchain name '{toolchain_name}' !, use default toolchain.")
            return self.get(TOOLCHAIN_ALLOW_LIST[project_type][0])

    def get_toolchain_names(self, project_type: Union[ProjectType, str]) -> List[ToolchainName]:
        return list(TOOLCHAIN_ALLOW_LIST[self._parse_project_type(project_type)])

    def is_toolchain_ready(self, name: ToolchainName) -> bool:
        """Check the install directory of a toolchain without initializing it."""
        cls = DESCRIPTOR_CLASSES.get(name)
        if cls is None:
            return False
        return cls(self.settings).is_ready()

    @staticmethod
    def get_description(name: ToolchainName) -> str:
        cls = DESCRIPTOR_CLASSES.get(name)
        return cls.description if cls else ""

    def invalidate(self, name: Optional[ToolchainName] = None) -> None:
        """
        Drop cached descriptors so the next request rebuilds them.

        Args:
            name: Toolchain to drop, or None for all
        """
        names = [name] if name is not None else list(DESCRIPTOR_CLASSES)
        for item in names:
            with self._get_name_lock(item):
                self._descriptors.pop(item, None)

    def on_changed(self, listener: ChangeListener) -> None:
        """Register a callback run with the name of each invalidated toolchain."""
        self._listeners.append(listener)

    def apply_settings(self, settings: Settings) -> List[ToolchainName]:
        """
        Switch to new host settings.

        Descriptors depending on a changed settings key are invalidated
        and the change listeners are notified.

        Returns:
            Names of the invalidated toolchains
        """
        changed = set(self.settings.changed_keys(settings))
        self.settings = settings

        invalidated = []
        for name in DESCRIPTOR_CLASSES:
            keys = Settings.setting_keys_for(name.value)
            if changed.intersection(keys):
                self.invalidate(name)
                invalidated.append(name)

        # Cached descriptors keep a reference to the old settings
        for descriptor in list(self._descriptors.values()):
            descriptor.settings = settings

        for name in invalidated:
            logging.info(f"Toolchain {name.value} settings changed, descriptor reloaded")
            for listener in self._listeners:
                listener(name)

        return invalidated
