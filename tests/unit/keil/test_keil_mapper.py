"""
Unit tests for the table-driven ARM option mapper.
"""

import xml.etree.ElementTree as ET

import pytest

from unifybuild.keil import KeilSettingMapper
from unifybuild.keil.mapper import load_mapper_table

TARGET_OPTION = """
<TargetOption>
  <TargetArmAds>
    <ArmAdsMisc>
      <useUlib>1</useUlib>
    </ArmAdsMisc>
    <Cads>
      <Optim>4</Optim>
      <oTime>7</oTime>
      <wLevel>9</wLevel>
      <v6Lang>3</v6Lang>
    </Cads>
  </TargetArmAds>
</TargetOption>
"""


@pytest.fixture
def target_option():
    return ET.fromstring(TARGET_OPTION)


class TestKeilSettingMapper:
    """Test suite for KeilSettingMapper."""

    def test_cached_per_variant(self):
        assert KeilSettingMapper.get("AC5") is KeilSettingMapper.get("AC5")
        assert KeilSettingMapper.get("AC5") is not KeilSettingMapper.get("AC6")

    def test_table_loaded_once(self):
        assert load_mapper_table() is load_mapper_table()

    def test_unknown_variant(self):
        with pytest.raises(ValueError):
            KeilSettingMapper.get("GCC")

    def test_groups_and_keys(self):
        mapper = KeilSettingMapper.get("AC5")

        assert mapper.get_group_list() == ["global", "c/cpp-compiler", "asm-compiler", "linker"]
        assert "optimization" in mapper.get_option_key_list("c/cpp-compiler")
        assert mapper.get_option_key_list("missing") == []

    def test_from_keil_enum(self, target_option):
        mapper = KeilSettingMapper.get("AC5")

        assert mapper.from_keil(target_option, "c/cpp-compiler", "optimization") == "level-3"
        assert mapper.from_keil(target_option, "global", "use-microLIB") is True

    def test_from_keil_falls_back_to_default_key(self, target_option):
        assert KeilSettingMapper.get("AC5").from_keil(target_option, "c/cpp-compiler", "warnings") == "unspecified"

    def test_from_keil_falls_back_to_false(self, target_option):
        assert KeilSettingMapper.get("AC5").from_keil(target_option, "c/cpp-compiler", "optimize-for-time") is False

    def test_from_keil_no_fallback(self, target_option):
        cads = target_option.find("TargetArmAds/Cads")
        cads.find("v6Lang").text = "42"

        assert KeilSettingMapper.get("AC6").from_keil(target_option, "c/cpp-compiler", "language-c") is None

    def test_from_keil_missing_field(self, target_option):
        mapper = KeilSettingMapper.get("AC5")

        assert mapper.from_keil(target_option, "c/cpp-compiler", "strict-ansi") is None
        assert mapper.from_keil(target_option, "c/cpp-compiler", "not-mapped") is None

    def test_to_keil_writes_raw_value(self, target_option):
        mapper = KeilSettingMapper.get("AC6")

        mapper.to_keil(target_option, "c/cpp-compiler", "optimization", "level-size")
        mapper.to_keil(target_option, "global", "use-microLIB", False)

        assert target_option.find("TargetArmAds/Cads/Optim").text == "7"
        assert target_option.find("TargetArmAds/ArmAdsMisc/useUlib").text == "0"

    def test_to_keil_creates_missing_elements(self):
        target_option = ET.Element("TargetOption")

        KeilSettingMapper.get("AC5").to_keil(target_option, "linker", "report-might-fail", True)

        assert target_option.find("TargetArmAds/LDads/RepFail").text == "1"

    def test_to_keil_ignores_unknown(self, target_option):
        mapper = KeilSettingMapper.get("AC5")

        mapper.to_keil(target_option, "c/cpp-compiler", "optimization", "level-fast")
        mapper.to_keil(target_option, "c/cpp-compiler", "C_FLAGS", "-g")

        assert target_option.find("TargetArmAds/Cads/Optim").text == "4"
        assert target_option.find("TargetArmAds/Cads/C_FLAGS") is None

    @pytest.mark.parametrize("variant", ["AC5", "AC6"])
    def test_symmetric(self, variant):
        mapper = KeilSettingMapper.get(variant)
        target_option = ET.Element("TargetOption")
        values = {"optimization": "level-1", "one-elf-section-per-function": True, "warnings": "no-warnings"}

        for key, value in values.items():
            mapper.to_keil(target_option, "c/cpp-compiler", key, value)

        for key, value in values.items():
            assert mapper.from_keil(target_option, "c/cpp-compiler", key) == value
