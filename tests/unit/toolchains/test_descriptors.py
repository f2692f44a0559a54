"""
Unit tests for the toolchain descriptors.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from unifybuild.config.settings import Settings
from unifybuild.toolchains import (
    AC5,
    AC6,
    GCC,
    IARSTM8,
    RISCV_GCC,
    SDCC,
    KeilC51,
    MacroProbeError,
    ProjectInfo,
    ToolchainName,
)
from unifybuild.toolchains.gnu import FALLBACK_GNU_MACROS, GnuToolchainDescriptor


@pytest.fixture
def settings(tmp_path):
    return Settings(
        armcc5_dir=str(tmp_path / "ARMCC"),
        armcc6_dir=str(tmp_path / "ARMCLANG"),
        gcc_dir=str(tmp_path / "gcc"),
        riscv_dir=str(tmp_path / "riscv"),
        c51_dir=str(tmp_path / "C51"),
        sdcc_dir=str(tmp_path / "sdcc"),
        iar_stm8_dir=str(tmp_path / "iar"),
    )


@pytest.fixture
def project_info(tmp_path):
    return ProjectInfo(target_name="demo", root_dir=tmp_path / "proj", out_dir=tmp_path / "proj" / "build")


class TestToolchainName:
    def test_parse(self):
        assert ToolchainName.parse("Keil_C51") == ToolchainName.KEIL_C51
        assert ToolchainName.parse("None") == ToolchainName.NONE
        assert ToolchainName.parse("GCC_OLD") is None


class TestDefaults:
    """Default option sets are handed out as fresh copies."""

    @pytest.mark.parametrize("cls", [AC5, AC6, GCC, RISCV_GCC, KeilC51, SDCC, IARSTM8])
    def test_default_config_is_a_copy(self, cls, settings):
        descriptor = cls(settings)
        first = descriptor.get_default_config()
        first["linker"]["output-format"] = "changed"
        first["global"]["extra"] = 1

        second = descriptor.get_default_config()

        assert second["linker"]["output-format"] != "changed"
        assert "extra" not in second["global"]
        assert second["version"] == descriptor.version
        assert second["beforeBuildTasks"] == []
        assert second["afterBuildTasks"] == []

    @pytest.mark.parametrize("cls", [AC5, AC6, GCC, RISCV_GCC, KeilC51, SDCC, IARSTM8])
    def test_force_include_header_exists(self, cls, settings):
        headers = cls(settings).get_force_include_headers()

        assert len(headers) == 1
        assert Path(headers[0]).is_file()


class TestArmDescriptors:
    def test_ac5_lib_output_uses_archiver(self, settings, project_info):
        descriptor = AC5(settings)
        options = descriptor.get_default_config()
        options["linker"]["output-format"] = "lib"
        before = dict(options["linker"])

        descriptor.pre_handle_options(project_info, options)

        assert options["linker"]["$use"] == "linker-lib"
        assert options["linker"]["output-format"] == "lib"
        assert {k: v for k, v in options["linker"].items() if k != "$use"} == before

    def test_ac5_elf_output_untouched(self, settings, project_info):
        descriptor = AC5(settings)
        options = descriptor.get_default_config()

        descriptor.pre_handle_options(project_info, options)

        assert "$use" not in options["linker"]

    def test_ac6_copies_lto_to_linker(self, settings, project_info):
        descriptor = AC6(settings)
        options = descriptor.get_default_config()

        descriptor.pre_handle_options(project_info, options)

        assert options["linker"]["link-time-optimization"] is True

    def test_ready_needs_bin_dir(self, settings, tmp_path):
        descriptor = AC5(settings)
        assert not descriptor.is_ready()

        (tmp_path / "ARMCC" / "bin").mkdir(parents=True)
        assert descriptor.is_ready()

    def test_ac5_system_includes(self, settings, tmp_path):
        (tmp_path / "ARMCC" / "include" / "rw").mkdir(parents=True)

        includes = AC5(settings).get_system_includes({})

        assert includes == [str(tmp_path / "ARMCC" / "include"), str(tmp_path / "ARMCC" / "include" / "rw")]


class TestGnuDescriptors:
    def test_initialize_probes_once(self, settings):
        descriptor = GCC(settings)

        with patch("unifybuild.toolchains.gnu.probe_macros", return_value=["__GNUC__=12"]) as macros, \
                patch("unifybuild.toolchains.gnu.probe_include_dirs", return_value=["/sys/inc"]):
            descriptor.initialize()

        macros.assert_called_once_with(descriptor.get_compiler_path())
        assert descriptor.get_internal_defines({}) == ["__GNUC__=12"]
        assert descriptor.get_system_includes({}) == ["/sys/inc"]

    def test_initialize_falls_back(self, settings):
        descriptor = RISCV_GCC(settings)

        with patch("unifybuild.toolchains.gnu.probe_macros", side_effect=MacroProbeError("no gcc")), \
                patch("unifybuild.toolchains.gnu.probe_include_dirs", side_effect=MacroProbeError("no gcc")):
            descriptor.initialize()

        assert descriptor.get_internal_defines({}) == FALLBACK_GNU_MACROS
        assert descriptor.get_system_includes({}) == []

    def test_compiler_path_uses_prefix(self, settings, tmp_path):
        path = GCC(settings).get_compiler_path()

        assert path.parent == tmp_path / "gcc" / "bin"
        assert path.name.startswith("arm-none-eabi-gcc")

    def test_tool_prefix_is_required(self, settings, tmp_path):
        class NoPrefix(GnuToolchainDescriptor):
            def get_toolchain_dir(self):
                return tmp_path

        with pytest.raises(TypeError, match="get_tool_prefix"):
            NoPrefix(settings)

    def test_pre_handle_sets_tool_prefix(self, settings, project_info):
        options = {"linker": {"output-format": "lib"}}

        RISCV_GCC(settings).pre_handle_options(project_info, options)

        assert options["global"]["toolPrefix"] == "riscv-none-embed-"
        assert options["linker"]["$use"] == "linker-lib"


class TestKeilC51:
    def test_optimization_is_combined(self, settings, project_info):
        options = KeilC51(settings).get_default_config()
        options["c/cpp-compiler"] = {"optimization-type": "size", "optimization-level": "level-9"}

        KeilC51(settings).pre_handle_options(project_info, options)

        assert options["c/cpp-compiler"]["optimization"] == "9,SIZE"

    def test_optimization_defaults(self, settings, project_info):
        options = {"c/cpp-compiler": {}}

        KeilC51(settings).pre_handle_options(project_info, options)

        assert options["c/cpp-compiler"]["optimization"] == "8,SPEED"

    def test_disable_warnings_list_is_joined(self, settings, project_info):
        options = {"linker": {"disable-warnings": [16, 15]}}

        KeilC51(settings).pre_handle_options(project_info, options)

        assert options["linker"]["disable-warnings"] == "16,15"

    def test_lib_output_replaces_library(self, settings, project_info):
        lib_file = project_info.out_dir / "demo.LIB"
        lib_file.parent.mkdir(parents=True)
        lib_file.write_bytes(b"stale objects")
        options = {"linker": {"output-format": "lib"}}

        KeilC51(settings).pre_handle_options(project_info, options)

        assert options["linker"]["$use"] == "linker-lib"
        assert lib_file.is_file()
        assert lib_file.read_bytes() == b""

    def test_custom_defines_and_dirs(self, settings, tmp_path):
        descriptor = KeilC51(settings)

        assert descriptor.get_custom_defines() == ["__UVISION_VERSION=526"]
        assert descriptor.get_default_includes() == [str(tmp_path / "C51" / "INC")]
        assert descriptor.get_lib_dirs() == [str(tmp_path / "C51" / "LIB")]


class TestSDCC:
    @pytest.mark.parametrize(
        "output_format, expected",
        [("lib", "linker-lib"), ("hex", None), ("bin", "bin"), ("elf", "elf")],
    )
    def test_output_format(self, settings, project_info, output_format, expected):
        options = {"linker": {"output-format": output_format, "$use": "old"}}

        SDCC(settings).pre_handle_options(project_info, options)

        assert options["linker"].get("$use") == expected

    @pytest.mark.parametrize("device, tool", [("mcs51", "sdas8051"), ("stm8", "sdasstm8"), ("hc08", "sdas6808")])
    def test_assembler_name(self, settings, project_info, device, tool):
        options = {"global": {"device": device}}

        SDCC(settings).pre_handle_options(project_info, options)

        assert options["asm-compiler"]["$toolName"] == tool

    def test_internal_defines(self, settings):
        options = {
            "global": {"device": "mcs51", "stack-auto": True, "misc-controls": "--model-large"},
            "c/cpp-compiler": {},
        }

        defines = SDCC(settings).get_internal_defines(options)

        assert defines[:4] == SDCC.VERSION_DEFINES
        assert "__SDCC_mcs51" in defines
        assert "__SDCC_STACK_AUTO" in defines
        assert "__SDCC_MODEL_LARGE" in defines

    def test_internal_defines_ds390_is_flat24(self, settings):
        defines = SDCC(settings).get_internal_defines({"global": {"device": "ds390"}})

        assert "__SDCC_MODEL_FLAT24" in defines

    def test_pic_processor(self, settings):
        defines = SDCC(settings).get_internal_defines(
            {"global": {"device": "pic16", "misc-controls": "-p18f452"}}
        )

        assert "__SDCC_PIC18F452" in defines

    def test_system_includes_non_free(self, settings, tmp_path):
        (tmp_path / "sdcc" / "include" / "stm8").mkdir(parents=True)

        includes = SDCC(settings).get_system_includes({"global": {"device": "stm8", "use-non-free": True}})

        assert includes == [
            str(tmp_path / "sdcc" / "include"),
            str(tmp_path / "sdcc" / "include" / "stm8"),
            str(tmp_path / "sdcc" / "non-free" / "include"),
        ]


class TestIARSTM8:
    def test_relative_linker_config(self, settings, project_info):
        options = {"linker": {"linker-config": "./cfg/stm8.icf"}}

        IARSTM8(settings).pre_handle_options(project_info, options)

        expected = os.path.normpath(os.path.join(str(project_info.root_dir), "cfg/stm8.icf"))
        assert options["linker"]["linker-config"] == f'"{expected}"'

    def test_toolchain_root_linker_config(self, settings, project_info, tmp_path):
        options = {"linker": {"linker-config": "${toolchainroot}/stm8/config/lnkstm8s103f3.icf"}}

        IARSTM8(settings).pre_handle_options(project_info, options)

        expected = os.path.normpath(f"{tmp_path / 'iar'}/stm8/config/lnkstm8s103f3.icf")
        assert options["linker"]["linker-config"] == f'"{expected}"'

    def test_plain_linker_config_untouched(self, settings, project_info):
        options = {"linker": {"linker-config": "lnkstm8s103f3.icf"}}

        IARSTM8(settings).pre_handle_options(project_info, options)

        assert options["linker"]["linker-config"] == "lnkstm8s103f3.icf"

    def test_runtime_lib(self, settings, project_info):
        options = {"c/cpp-compiler": {"runtime-lib": "full", "code-mode": "medium", "data-mode": "large"}}

        IARSTM8(settings).pre_handle_options(project_info, options)

        assert options["c/cpp-compiler"]["runtime-lib"] == "dlstm8mlf.h"

    def test_null_runtime_lib_is_removed(self, settings, project_info):
        options = {"c/cpp-compiler": {"runtime-lib": "null"}}

        IARSTM8(settings).pre_handle_options(project_info, options)

        assert "runtime-lib" not in options["c/cpp-compiler"]
