"""Per-project, per-toolchain option file access."""

import logging
from pathlib import Path
from typing import Any, Dict

from ..config.project import ProjectConfig
from ..toolchains.base import ToolchainDescriptor
from .migration import (
    OptionMigrationError,
    migrate_options,
    read_option_file,
    validate_options,
    write_option_file,
)


class OptionModel:
    """Option set of one toolchain within one project.

    The file lives at ``<root>/.unifybuild/<config_name>``.
    """

    def __init__(self, project: ProjectConfig, descriptor: ToolchainDescriptor):
        self.project = project
        self.descriptor = descriptor

    @property
    def path(self) -> Path:
        return self.project.option_file_for(self.descriptor.config_name)

    def load(self) -> Dict[str, Any]:
        """
        Load the option set, migrating the file when it is outdated.

        A missing file is created with the toolchain defaults. A malformed
        file is left untouched and the defaults are used for this session.

        Returns:
            Current option set
        """
        if not self.path.exists():
            options = self.descriptor.get_default_config()
            self.save(options)
            return options

        try:
            on_disk = read_option_file(self.path)
            options = migrate_options(on_disk, self.descriptor)
        except OptionMigrationError as e:
            logging.warning(f"{e}; using {self.descriptor.name.value} defaults for this session")
            return self.descriptor.get_default_config()

        if options.get("version") != on_disk.get("version"):
            self.save(options)

        validate_options(options, self.descriptor)
        return options

    def save(self, options: Dict[str, Any]) -> Path:
        write_option_file(self.path, options)
        logging.debug(f"Options written to {self.path}")
        return self.path
