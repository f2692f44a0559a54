"""
Command-line interface for unifybuild.

This module provides the `unifybuild` CLI tool for compiling embedded
projects into builder requests and translating Keil uVision projects.
"""

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from unifybuild import __version__
from unifybuild.build import BuildParameterCompiler, InvalidMemoryLayoutError, generate_scatter_file
from unifybuild.cli_utils import ErrorFormatter, PathValidator, setup_logging
from unifybuild.config import (
    ArmCompileConfig,
    ProjectConfig,
    ProjectConfigError,
    ProjectType,
    Settings,
    SettingsError,
)
from unifybuild.keil import KeilParser, LegacyParseError
from unifybuild.options import OptionModel
from unifybuild.options.migration import write_option_file
from unifybuild.toolchains import (
    TOOLCHAIN_ALLOW_LIST,
    OutputLibraryError,
    ToolchainName,
    ToolchainNotReadyError,
    ToolchainRegistry,
)

DEFAULT_SETTINGS_FILE = Path.home() / ".unifybuild" / "unifybuild.ini"


@dataclass
class ParamsArgs:
    """Arguments for the params command."""

    project_dir: Path
    settings: Optional[Path] = None
    rebuild: bool = False
    debug: bool = False
    verbose: bool = False


@dataclass
class ScatterArgs:
    """Arguments for the scatter command."""

    project_dir: Path
    output: Optional[Path] = None
    verbose: bool = False


@dataclass
class ImportArgs:
    """Arguments for the import command."""

    keil_file: Path
    output_dir: Path
    settings: Optional[Path] = None
    verbose: bool = False


@dataclass
class ExportArgs:
    """Arguments for the export command."""

    project_dir: Path
    template: Path
    output_dir: Optional[Path] = None
    device: Optional[str] = None
    vendor: Optional[str] = None
    settings: Optional[Path] = None
    verbose: bool = False


@dataclass
class MigrateArgs:
    """Arguments for the migrate command."""

    project_dir: Path
    settings: Optional[Path] = None
    verbose: bool = False


def load_settings(path: Optional[Path]) -> Settings:
    """Load host settings, exiting with code 2 on a broken file."""
    try:
        return Settings.from_ini(path or DEFAULT_SETTINGS_FILE)
    except SettingsError as e:
        ErrorFormatter.handle_error("Error: Invalid settings", e, exit_code=2)
        raise


def params_command(args: ParamsArgs) -> None:
    """Compile a project into builder.params.

    Examples:
        unifybuild params                  # Compile the current project
        unifybuild params demo --rebuild   # Force a full rebuild
    """
    try:
        registry = ToolchainRegistry(load_settings(args.settings))
        project = ProjectConfig.load(args.project_dir)
        compiler = BuildParameterCompiler(project, registry)
        command = compiler.generate(rebuild=args.rebuild, debug=args.debug)

        ErrorFormatter.print_success(f"Builder params written to {compiler.params_path}")
        print()
        print(" ".join(shlex.quote(part) for part in command))
        sys.exit(0)

    except ProjectConfigError as e:
        ErrorFormatter.handle_error("Error: Invalid project", e)
    except ToolchainNotReadyError as e:
        ErrorFormatter.handle_error("Error: Toolchain not ready", e)
    except InvalidMemoryLayoutError as e:
        ErrorFormatter.handle_error("Error: Invalid memory layout", e)
    except OutputLibraryError as e:
        ErrorFormatter.handle_error("Error: Output library", e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def scatter_command(args: ScatterArgs) -> None:
    """Generate the scatter file of an ARM project.

    Examples:
        unifybuild scatter                 # Writes <outDir>/<name>.sct
        unifybuild scatter -o link.sct     # Writes link.sct
    """
    try:
        project = ProjectConfig.load(args.project_dir)
        if not isinstance(project.compile_config, ArmCompileConfig):
            ErrorFormatter.print_error(
                "Error: Not an ARM project", f"Project type '{project.type.value}' has no scatter file"
            )
            sys.exit(1)

        output = args.output or project.out_path / f"{project.name}.sct"
        path = generate_scatter_file(project.compile_config.storage_layout, output)
        ErrorFormatter.print_success(f"Scatter file written to {path}")
        sys.exit(0)

    except ProjectConfigError as e:
        ErrorFormatter.handle_error("Error: Invalid project", e)
    except InvalidMemoryLayoutError as e:
        ErrorFormatter.handle_error("Error: Invalid memory layout", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def import_command(args: ImportArgs) -> None:
    """Import a Keil uVision project.

    Each target becomes a project. A single target is written to the output
    directory itself, several targets to one sub-directory each.

    Examples:
        unifybuild import demo.uvprojx              # Import into the current directory
        unifybuild import demo.uvproj -o ../demo51  # Import elsewhere
    """
    try:
        registry = ToolchainRegistry(load_settings(args.settings))
        parser = KeilParser.open(args.keil_file)
        results = parser.parse()

        for result in results:
            root = args.output_dir if len(results) == 1 else args.output_dir / result.name
            project = result.to_project(root.resolve())
            project.save()

            for name in result.options_group:
                descriptor = registry.get(ToolchainName(name))
                options = result.merged_options(name, descriptor.get_default_config())
                write_option_file(project.option_file_for(descriptor.config_name), options)

            print(f"Imported target '{result.name}' -> {project.root_dir}")

        for warning in parser.warnings:
            ErrorFormatter.print_warning(warning)

        ErrorFormatter.print_success(f"Imported {len(results)} target(s) from {args.keil_file}")
        sys.exit(0)

    except LegacyParseError as e:
        ErrorFormatter.handle_error("Error: Invalid uVision project", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def export_command(args: ExportArgs) -> None:
    """Export a project into a Keil uVision project.

    The template's first target is overwritten; everything the exporter
    does not write is kept from the template.

    Examples:
        unifybuild export --template template.uvprojx
        unifybuild export demo --template t.uvproj -o out --device STC89C52RC
    """
    try:
        registry = ToolchainRegistry(load_settings(args.settings))
        project = ProjectConfig.load(args.project_dir)
        descriptor = registry.resolve(project.type, project.toolchain)

        parser = KeilParser.open(args.template)
        expected = ProjectType.C51 if project.type == ProjectType.C51 else ProjectType.ARM
        if parser.TYPE_TAG != expected:
            ErrorFormatter.print_error(
                "Error: Template mismatch",
                f"'{args.template.name}' is not a template for a {project.type.value} project",
            )
            sys.exit(1)

        output_dir = args.output_dir or project.root_dir
        options = OptionModel(project, descriptor).load()
        parser.set_keil_xml(
            project,
            descriptor.name,
            options,
            device=args.device,
            vendor=args.vendor,
            default_includes=descriptor.get_default_includes(),
            keil_dir=output_dir,
        )
        path = parser.save(output_dir, project.name)

        for warning in parser.warnings:
            ErrorFormatter.print_warning(warning)

        ErrorFormatter.print_success(f"uVision project written to {path}")
        sys.exit(0)

    except ProjectConfigError as e:
        ErrorFormatter.handle_error("Error: Invalid project", e)
    except LegacyParseError as e:
        ErrorFormatter.handle_error("Error: Invalid uVision template", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def migrate_command(args: MigrateArgs) -> None:
    """Bring the option file of a project's toolchain up to date.

    Examples:
        unifybuild migrate
        unifybuild migrate demo
    """
    try:
        registry = ToolchainRegistry(load_settings(args.settings))
        project = ProjectConfig.load(args.project_dir)
        descriptor = registry.resolve(project.type, project.toolchain)
        model = OptionModel(project, descriptor)
        options = model.load()

        ErrorFormatter.print_success(
            f"{model.path} is at version {options.get('version')} ({descriptor.name.value})"
        )
        sys.exit(0)

    except ProjectConfigError as e:
        ErrorFormatter.handle_error("Error: Invalid project", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def toolchains_command(settings_path: Optional[Path]) -> None:
    """List the toolchains of every project type and whether they are installed."""
    registry = ToolchainRegistry(load_settings(settings_path))
    for project_type, names in TOOLCHAIN_ALLOW_LIST.items():
        print(f"{project_type.value}:")
        for name in names:
            mark = "✓" if registry.is_toolchain_ready(name) else "✗"
            print(f"  {mark} {name.value:<10} {registry.get_description(name)}")
    sys.exit(0)


def _add_common_arguments(parser: argparse.ArgumentParser, settings: bool = True) -> None:
    if settings:
        parser.add_argument(
            "--settings",
            type=Path,
            default=None,
            help=f"Host settings file (default: {DEFAULT_SETTINGS_FILE})",
        )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def _add_project_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )


def main(argv: Optional[List[str]] = None) -> None:
    """unifybuild - Multi-toolchain embedded build configuration compiler."""
    parser = argparse.ArgumentParser(
        prog="unifybuild",
        description="unifybuild - Multi-toolchain embedded build configuration compiler",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"unifybuild {__version__}",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to a rotating log file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Params command
    params_parser = subparsers.add_parser(
        "params",
        help="Compile the project into builder.params",
    )
    _add_project_dir(params_parser)
    params_parser.add_argument(
        "-r",
        "--rebuild",
        action="store_true",
        help="Force a full rebuild",
    )
    params_parser.add_argument(
        "--debug",
        action="store_true",
        help="Ask the builder to print its parameters",
    )
    _add_common_arguments(params_parser)

    # Scatter command
    scatter_parser = subparsers.add_parser(
        "scatter",
        help="Generate the scatter file of an ARM project",
    )
    _add_project_dir(scatter_parser)
    scatter_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file (default: <outDir>/<name>.sct)",
    )
    _add_common_arguments(scatter_parser, settings=False)

    # Import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import a Keil uVision project",
    )
    import_parser.add_argument(
        "keil_file",
        type=Path,
        help="Keil project file (.uvprojx or .uvproj)",
    )
    import_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path.cwd(),
        help="Project directory to create (default: current directory)",
    )
    _add_common_arguments(import_parser)

    # Export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export the project into a Keil uVision project",
    )
    _add_project_dir(export_parser)
    export_parser.add_argument(
        "--template",
        type=Path,
        required=True,
        help="uVision project whose first target is overwritten",
    )
    export_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: project directory)",
    )
    export_parser.add_argument(
        "--device",
        default=None,
        help="Device name (C51 default: AT89C52)",
    )
    export_parser.add_argument(
        "--vendor",
        default=None,
        help="Device vendor (C51 default: Atmel)",
    )
    _add_common_arguments(export_parser)

    # Migrate command
    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Migrate the toolchain option file to the current version",
    )
    _add_project_dir(migrate_parser)
    _add_common_arguments(migrate_parser)

    # Toolchains command
    toolchains_parser = subparsers.add_parser(
        "toolchains",
        help="List toolchains and their install state",
    )
    toolchains_parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help=f"Host settings file (default: {DEFAULT_SETTINGS_FILE})",
    )

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(getattr(parsed_args, "verbose", False), parsed_args.log_file)

    # Validate inputs exist
    if hasattr(parsed_args, "project_dir"):
        PathValidator.validate_project_dir(parsed_args.project_dir)
    if hasattr(parsed_args, "keil_file"):
        PathValidator.validate_file(parsed_args.keil_file)
    if hasattr(parsed_args, "template"):
        PathValidator.validate_file(parsed_args.template)

    # Execute command
    if parsed_args.command == "params":
        params_command(
            ParamsArgs(
                project_dir=parsed_args.project_dir,
                settings=parsed_args.settings,
                rebuild=parsed_args.rebuild,
                debug=parsed_args.debug,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "scatter":
        scatter_command(
            ScatterArgs(
                project_dir=parsed_args.project_dir,
                output=parsed_args.output,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "import":
        import_command(
            ImportArgs(
                keil_file=parsed_args.keil_file,
                output_dir=parsed_args.output_dir,
                settings=parsed_args.settings,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "export":
        export_command(
            ExportArgs(
                project_dir=parsed_args.project_dir,
                template=parsed_args.template,
                output_dir=parsed_args.output_dir,
                device=parsed_args.device,
                vendor=parsed_args.vendor,
                settings=parsed_args.settings,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "migrate":
        migrate_command(
            MigrateArgs(
                project_dir=parsed_args.project_dir,
                settings=parsed_args.settings,
                verbose=parsed_args.verbose,
            )
        )
    elif parsed_args.command == "toolchains":
        toolchains_command(parsed_args.settings)


if __name__ == "__main__":
    main()
