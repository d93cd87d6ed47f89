"""
Molar ↔ mass concentration conversion
"""

import pytest

from aqhi_fusion.processors.unit_converter import (
    MGM3, PPB, PPM, UGM3, UnitConverter, is_mass_unit, is_molar_unit, normalize_unit,
)
from aqhi_fusion.utils.errors import ConfigurationError


@pytest.fixture
def converter():
    return UnitConverter()


class TestUnitNames:

    def test_feed_spellings_are_normalized(self):
        assert normalize_unit("PARTS_PER_BILLION") == PPB
        assert normalize_unit("ppm") == PPM
        assert normalize_unit("µg/m3") == UGM3
        assert normalize_unit("MICROGRAMS_PER_CUBIC_METER") == UGM3
        assert normalize_unit("mg/m3") == MGM3

    def test_unit_kinds(self):
        assert is_molar_unit("ppb")
        assert is_mass_unit("ug/m3")
        assert not is_mass_unit("ppm")

    def test_unknown_unit_raises(self):
        with pytest.raises(ConfigurationError):
            normalize_unit("furlongs")


class TestConversions:

    def test_published_factors(self, converter):
        assert converter.convert(10, "ppb", "μg/m³", "o3") == pytest.approx(19.62)
        assert converter.convert(25, "ppb", "μg/m³", "no2") == pytest.approx(47.0)
        assert converter.convert(10, "ppb", "μg/m³", "so2") == pytest.approx(26.2)
        assert converter.convert(1, "ppm", "mg/m³", "co") == pytest.approx(1.15)

    def test_default_mass_unit_follows_molar_scale(self, converter):
        assert converter.to_mass_concentration(2, "ppm", "co") == pytest.approx(2.3)
        assert converter.to_mass_concentration(2, "ppb", "no2") == pytest.approx(3.76)

    def test_mass_to_molar(self, converter):
        assert converter.convert(47.0, "μg/m³", "ppb", "no2") == pytest.approx(25.0)
        assert converter.convert(1.15, "mg/m³", "ppm", "co") == pytest.approx(1.0)

    def test_molar_to_molar_goes_through_mass(self, converter):
        assert converter.convert(0.054, "ppm", "ppb", "o3") == pytest.approx(54.0)
        assert converter.convert(1500, "ppb", "ppm", "co") == pytest.approx(1.5)

    def test_mass_rescaling_needs_no_factor(self, converter):
        assert converter.convert(1.2, "mg/m³", "μg/m³", "pm25") == pytest.approx(1200)

    def test_same_unit_is_identity(self, converter):
        assert converter.convert(12.34, "ppb", "parts_per_billion", "o3") == 12.34

    def test_particulates_have_no_molar_form(self, converter):
        with pytest.raises(ConfigurationError):
            converter.convert(12, "μg/m³", "ppb", "pm25")
        with pytest.raises(ConfigurationError):
            converter.mass_factor("pm10")


class TestCustomFactors:

    def test_ideal_gas_factors_match_published_ones(self):
        converter = UnitConverter.from_molar_masses()
        assert converter.mass_factor("o3") == pytest.approx(1.962, abs=0.01)
        assert converter.mass_factor("no2") == pytest.approx(1.88, abs=0.01)
        assert converter.mass_factor("so2") == pytest.approx(2.62, abs=0.01)
        assert converter.mass_factor("co") == pytest.approx(1.15, abs=0.01)

    def test_warmer_air_is_less_dense(self):
        hot = UnitConverter.from_molar_masses(temp_K=308.15)
        assert hot.mass_factor("o3") < UnitConverter().mass_factor("o3")

    def test_invalid_factor_tables_raise(self):
        with pytest.raises(ConfigurationError):
            UnitConverter({"pm25": 1.0})
        with pytest.raises(ConfigurationError):
            UnitConverter({"o3": 0})

    def test_missing_factor_raises(self):
        converter = UnitConverter({"o3": 2.0})
        with pytest.raises(ConfigurationError):
            converter.convert(10, "ppb", "μg/m³", "no2")

    def test_factors_from_json(self, tmp_path):
        path = tmp_path / "factors.json"
        path.write_text('{"o3": 2.0, "no2": 1.88}', encoding="utf-8")
        converter = UnitConverter.from_json_file(path)
        assert converter.convert(10, "ppb", "μg/m³", "o3") == pytest.approx(20.0)

    def test_unreadable_factor_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            UnitConverter.from_json_file(tmp_path / "missing.json")
        path = tmp_path / "list.json"
        path.write_text("[1.962]", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            UnitConverter.from_json_file(path)
