"""CLI utility functions for unifybuild.

This module provides common utilities used across CLI commands including:
- Logging setup
- Error handling and formatting
- Path validation
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Setup logging for the CLI.

    Args:
        verbose: Log at DEBUG level instead of WARNING on the console
        log_file: Optional rotating log file, always at INFO level or lower
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
        )
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "File not found", "Toolchain not ready")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_error(title: str, error: Exception, exit_code: int = 1) -> None:
        """Print an expected error and exit.

        Args:
            title: Error title
            error: The exception to report
            exit_code: Process exit code
        """
        ErrorFormatter.print_error(title, str(error))
        sys.exit(exit_code)

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> None:
        ErrorFormatter.print_error("Error: File not found", str(error))
        print("Make sure you're in a unifybuild project directory with a project.json file.")
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates project paths and input files."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Validate that project directory exists and is a directory.

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not project_dir.exists():
            print(f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}")
            sys.exit(2)
        if not project_dir.is_dir():
            print(f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}")
            sys.exit(2)

    @staticmethod
    def validate_file(path: Path) -> None:
        """Validate that an input file exists.

        Raises:
            SystemExit: If path doesn't exist or isn't a file
        """
        if not path.is_file():
            print(f"{ErrorFormatter.RED}✗ Error: File does not exist: {path}{ErrorFormatter.RESET}")
            sys.exit(2)
