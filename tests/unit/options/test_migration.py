"""
Unit tests for option set migration and validation.
"""

import copy

import pytest

from unifybuild.config.settings import Settings
from unifybuild.options.migration import (
    OptionMigrationError,
    load_properties,
    load_schema,
    migrate_options,
    read_option_file,
    validate_options,
)
from unifybuild.toolchains import AC5, IARSTM8, SDCC, KeilC51


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def ac5(settings):
    return AC5(settings)


class TestMigrateOptions:
    """Test suite for migrate_options."""

    def test_current_version_is_unchanged(self, ac5):
        options = ac5.get_default_config()
        options["c/cpp-compiler"]["not-a-real-key"] = True

        migrated = migrate_options(options, ac5)

        assert migrated == options
        assert migrated is not options

    def test_input_is_not_modified(self, ac5):
        on_disk = {"version": 1, "c/cpp-compiler": {"optimization": "level-3", "stale": 1}}
        snapshot = copy.deepcopy(on_disk)

        migrate_options(on_disk, ac5)

        assert on_disk == snapshot

    def test_unknown_keys_dropped_and_defaults_filled(self, ac5):
        on_disk = {
            "version": 1,
            "c/cpp-compiler": {"optimization": "level-3", "stale": 1},
            "linker": {"output-format": "elf", "old-flag": "x"},
        }

        migrated = migrate_options(on_disk, ac5)

        assert migrated["version"] == ac5.version
        assert migrated["c/cpp-compiler"]["optimization"] == "level-3"
        assert "stale" not in migrated["c/cpp-compiler"]
        assert "old-flag" not in migrated["linker"]
        assert migrated["c/cpp-compiler"]["c99-mode"] is True
        assert migrated["global"] == ac5.get_default_config()["global"]

    def test_output_lib_flag_maps_to_output_format(self, ac5):
        migrated = migrate_options({"version": 1, "linker": {"output-lib": True}}, ac5)

        assert migrated["linker"]["output-format"] == "lib"
        assert "output-lib" not in migrated["linker"]

    def test_ac5_misc_control_moves_to_c_flags(self, ac5):
        on_disk = {"version": 1, "c/cpp-compiler": {"misc-control": "--gnu", "C_FLAGS": "-g"}}

        migrated = migrate_options(on_disk, ac5)

        assert migrated["c/cpp-compiler"]["C_FLAGS"] == "--gnu -g"
        assert "misc-control" not in migrated["c/cpp-compiler"]

    def test_disable_warnings_list_is_joined(self, settings):
        c51 = KeilC51(settings)
        on_disk = {"version": 1, "linker": {"disable-warnings": [16, 15]}}

        migrated = migrate_options(on_disk, c51)

        assert migrated["linker"]["disable-warnings"] == "16,15"

    def test_sdcc_executable_format(self, settings):
        sdcc = SDCC(settings)

        migrated = migrate_options({"version": 1, "linker": {"executable-format": "s19"}}, sdcc)

        assert migrated["linker"]["output-format"] == "s19"

    def test_iar_modes_move_to_global(self, settings):
        iar = IARSTM8(settings)
        on_disk = {"version": 1, "c/cpp-compiler": {"code-mode": "large", "data-mode": "small"}}

        migrated = migrate_options(on_disk, iar)

        assert migrated["global"]["code-mode"] == "large"
        assert migrated["global"]["data-mode"] == "small"

    def test_missing_version_counts_as_zero(self, ac5):
        migrated = migrate_options({"global": {"use-microLIB": False}}, ac5)

        assert migrated["version"] == ac5.version
        assert migrated["global"]["use-microLIB"] is False

    def test_string_version_is_numeric(self, ac5):
        migrated = migrate_options({"version": "2", "linker": {"output-lib": True}}, ac5)

        assert migrated["version"] == ac5.version
        assert migrated["linker"]["output-format"] == "lib"

        current = migrate_options({"version": str(ac5.version)}, ac5)
        assert current == {"version": ac5.version}

    def test_non_numeric_version_raises(self, ac5):
        with pytest.raises(OptionMigrationError, match="Invalid option set version"):
            migrate_options({"version": "v2"}, ac5)

        with pytest.raises(OptionMigrationError):
            migrate_options({"version": [2]}, ac5)

    def test_explicit_properties(self, ac5):
        properties = {"linker": {"properties": {"output-format": {}}}}
        on_disk = {"version": 1, "linker": {"output-format": "elf", "LD_FLAGS": "-x"}}

        migrated = migrate_options(on_disk, ac5, properties)

        assert "LD_FLAGS" not in migrated["linker"]

    @pytest.mark.parametrize(
        "on_disk",
        [
            {"version": 1, "c/cpp-compiler": {"optimization": "level-1", "stale": 1}},
            {"linker": {"output-lib": True, "disable-warnings": [1, 2]}},
            {},
        ],
    )
    def test_idempotent(self, ac5, on_disk):
        once = migrate_options(on_disk, ac5)
        twice = migrate_options(once, ac5)

        assert twice == once


class TestSchemas:
    """Tests for the property-description resources."""

    @pytest.mark.parametrize(
        "name",
        [
            "arm.v5.verify.json",
            "arm.v6.verify.json",
            "arm.gcc.verify.json",
            "riscv.gcc.verify.json",
            "8051.keil.verify.json",
            "sdcc.verify.json",
            "stm8.iar.verify.json",
        ],
    )
    def test_schema_loads(self, name):
        schema = load_schema(name)

        assert "properties" in schema

    def test_schema_is_cached(self):
        assert load_schema("arm.v5.verify.json") is load_schema("arm.v5.verify.json")

    def test_missing_schema_raises(self):
        with pytest.raises(OptionMigrationError):
            load_schema("missing.verify.json")

    def test_load_properties(self, ac5):
        properties = load_properties(ac5)

        assert "use-microLIB" in properties["global"]["properties"]

    def test_defaults_validate(self, settings):
        for cls in (AC5, KeilC51, SDCC, IARSTM8):
            descriptor = cls(settings)
            assert validate_options(descriptor.get_default_config(), descriptor) == []

    def test_invalid_value_reported(self, ac5, caplog):
        options = ac5.get_default_config()
        options["c/cpp-compiler"]["optimization"] = "level-9"

        messages = validate_options(options, ac5)

        assert len(messages) == 1
        assert "c/cpp-compiler/optimization" in messages[0]
        assert "level-9" in caplog.text


class TestReadOptionFile:
    def test_not_an_object(self, tmp_path):
        path = tmp_path / "options.json"
        path.write_text("[1, 2]")

        with pytest.raises(OptionMigrationError):
            read_option_file(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "options.json"
        path.write_text("{")

        with pytest.raises(OptionMigrationError):
            read_option_file(path)
