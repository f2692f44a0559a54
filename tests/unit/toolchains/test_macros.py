"""
Unit tests for compiler macro and include directory probing.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from unifybuild.toolchains.macros import (
    MacroProbeError,
    macro_to_define,
    parse_include_search_list,
    parse_macro_dump,
    probe_include_dirs,
    probe_macros,
)

MACRO_DUMP = """#define __GNUC__ 10
#define __ARM_ARCH 7

#define __UINT32_MAX__ 0xffffffffUL
#define __INT64_C(c) c ## LL
#define __STDC__ 1
"""


class TestMacroParsing:
    """Tests for #define line parsing."""

    def test_normal_macro(self):
        assert macro_to_define("#define __GNUC__ 10") == "__GNUC__=10"

    def test_function_macro_loses_body(self):
        assert macro_to_define("#define MAX(a,b) ((a)>(b)?(a):(b))") == "MAX(a,b)="

    def test_empty_macro_keeps_name(self):
        output = "#define __USER_LABEL_PREFIX__ \n#define __REGISTER_PREFIX__ \r\n#define __ELF__ 1\n"

        assert parse_macro_dump(output) == ["__USER_LABEL_PREFIX__=", "__REGISTER_PREFIX__=", "__ELF__=1"]

    def test_not_a_define(self):
        assert macro_to_define("# 1 \"<stdin>\"") is None
        assert macro_to_define("#undef FOO") is None

    def test_parse_dump_skips_blank_lines(self):
        defines = parse_macro_dump(MACRO_DUMP)

        assert defines == [
            "__GNUC__=10",
            "__ARM_ARCH=7",
            "__UINT32_MAX__=0xffffffffUL",
            "__INT64_C(c)=",
            "__STDC__=1",
        ]

    def test_parse_include_search_list(self, tmp_path):
        inc1 = tmp_path / "include"
        inc2 = tmp_path / "include-fixed"
        inc1.mkdir()
        inc2.mkdir()
        output = (
            "ignoring nonexistent directory \"/nope\"\n"
            "#include \"...\" search starts here:\n"
            "#include <...> search starts here:\n"
            f" {inc1}\n"
            f" {inc2}\n"
            f" {tmp_path / 'missing'}\n"
            "End of search list.\n"
            f" {tmp_path}\n"
        )

        assert parse_include_search_list(output) == [str(inc1), str(inc2)]


class TestProbe:
    """Tests for running the compiler preprocessor."""

    def test_probe_macros(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=MACRO_DUMP, stderr="")

        with patch("unifybuild.toolchains.macros.subprocess.run", return_value=completed) as mock_run:
            defines = probe_macros(Path("/opt/gcc/bin/arm-none-eabi-gcc"))

        assert "__GNUC__=10" in defines
        cmd = mock_run.call_args.args[0]
        assert cmd[1:] == ["-E", "-dM", "-"]

    def test_probe_macros_nonzero_exit(self):
        completed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="boom")

        with patch("unifybuild.toolchains.macros.subprocess.run", return_value=completed):
            with pytest.raises(MacroProbeError):
                probe_macros(Path("gcc"))

    def test_probe_macros_missing_compiler(self):
        with patch("unifybuild.toolchains.macros.subprocess.run", side_effect=FileNotFoundError("gcc")):
            with pytest.raises(MacroProbeError):
                probe_macros(Path("gcc"))

    def test_probe_include_dirs_reads_stderr(self, tmp_path):
        stderr = f"#include <...> search starts here:\n {tmp_path}\nEnd of search list.\n"
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr=stderr)

        with patch("unifybuild.toolchains.macros.subprocess.run", return_value=completed):
            assert probe_include_dirs(Path("gcc")) == [str(tmp_path)]
