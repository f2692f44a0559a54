"""Project model and host settings for unifybuild."""

from .project import (
    ArmCompileConfig,
    C51CompileConfig,
    Dependence,
    DependenceGroup,
    FileGroup,
    GccCompileConfig,
    MemoryRegion,
    ProjectConfig,
    ProjectConfigError,
    ProjectType,
    SourceFile,
    StorageLayout,
)
from .settings import Settings, SettingsError

__all__ = [
    "ArmCompileConfig",
    "C51CompileConfig",
    "Dependence",
    "DependenceGroup",
    "FileGroup",
    "GccCompileConfig",
    "MemoryRegion",
    "ProjectConfig",
    "ProjectConfigError",
    "ProjectType",
    "SourceFile",
    "StorageLayout",
    "Settings",
    "SettingsError",
]
