"""Unit tests for CLI utilities."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from unifybuild.cli_utils import ErrorFormatter, PathValidator, setup_logging


@pytest.fixture
def clean_root_logger():
    """Restore the root logger after a test installs handlers."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


class TestSetupLogging:
    def test_console_only(self, clean_root_logger):
        setup_logging()

        added = clean_root_logger.handlers[-1]
        assert isinstance(added, logging.StreamHandler)
        assert added.level == logging.WARNING
        assert clean_root_logger.level == logging.INFO

    def test_verbose(self, clean_root_logger):
        setup_logging(verbose=True)

        assert clean_root_logger.handlers[-1].level == logging.DEBUG
        assert clean_root_logger.level == logging.DEBUG

    def test_log_file(self, clean_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "unifybuild.log"

        setup_logging(log_file=log_file)
        logging.info("written to file")
        for handler in clean_root_logger.handlers:
            handler.flush()

        file_handler = clean_root_logger.handlers[-1]
        assert isinstance(file_handler, RotatingFileHandler)
        assert file_handler.maxBytes == 10 * 1024 * 1024
        assert "written to file" in log_file.read_text()


class TestErrorFormatter:
    """Tests for ErrorFormatter class."""

    def test_print_error(self, capsys):
        ErrorFormatter.print_error("Error: Broken", "details here")

        out = capsys.readouterr().out
        assert "✗ Error: Broken" in out
        assert "details here" in out

    def test_print_success(self, capsys):
        ErrorFormatter.print_success("Done")

        assert "✓ Done" in capsys.readouterr().out

    def test_handle_error_exit_code(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_error("Error: Invalid settings", ValueError("bad key"), exit_code=2)

        assert exc_info.value.code == 2
        assert "bad key" in capsys.readouterr().out

    def test_handle_file_not_found(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_file_not_found(FileNotFoundError("project.json"))

        assert exc_info.value.code == 1
        assert "project.json file" in capsys.readouterr().out

    def test_keyboard_interrupt(self):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_keyboard_interrupt()

        assert exc_info.value.code == 130

    def test_unexpected_error_verbose(self, capsys):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            with pytest.raises(SystemExit) as exc_info:
                ErrorFormatter.handle_unexpected_error(e, verbose=True)

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "RuntimeError: boom" in out
        assert "Traceback" in out


class TestPathValidator:
    def test_existing_dir(self, tmp_path):
        PathValidator.validate_project_dir(tmp_path)

    def test_missing_dir(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            PathValidator.validate_project_dir(tmp_path / "missing")

        assert exc_info.value.code == 2

    def test_file_is_not_a_dir(self, tmp_path):
        path = tmp_path / "project.json"
        path.write_text("{}")

        with pytest.raises(SystemExit) as exc_info:
            PathValidator.validate_project_dir(path)

        assert exc_info.value.code == 2

    def test_validate_file(self, tmp_path, capsys):
        path = tmp_path / "demo.uvprojx"
        path.write_text("<Project/>")
        PathValidator.validate_file(path)

        with pytest.raises(SystemExit) as exc_info:
            PathValidator.validate_file(tmp_path / "other.uvprojx")

        assert exc_info.value.code == 2
        assert "File does not exist" in capsys.readouterr().out
