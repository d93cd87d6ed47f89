"""
AQHI formula variants, categories and edge cases
"""

import json

import pytest

from conftest import make_reading

from aqhi_fusion.processors.health_index import (
    HEALTH_CANADA, METHOD_CURRENT, METHOD_ESTIMATED, METHOD_WINDOW_AVERAGE, NO_DATA_REASON,
    FormulaVariant, HealthIndexCalculator, VariantRegistry, get_category,
)
from aqhi_fusion.processors.pollutants import PollutantValues
from aqhi_fusion.utils.errors import ConfigurationError, InvalidReadingError

TYPICAL_BANGKOK = {"pm25": 12, "no2": 25, "o3": 60}


@pytest.fixture
def calculator():
    return HealthIndexCalculator()


class TestVariants:
    """Known values for each formula variant"""

    def test_thai_opd(self, calculator):
        result = calculator.compute_health_index(TYPICAL_BANGKOK, "thai_opd")
        assert result.total_risk == pytest.approx(21.5, abs=0.1)
        assert result.value == 2
        assert result.category.label == "Low"
        assert result.calculation_method == METHOD_WINDOW_AVERAGE
        assert result.variant == "thai_opd"

    def test_health_canada(self, calculator):
        result = calculator.compute_health_index(TYPICAL_BANGKOK, "health_canada")
        assert result.total_risk == pytest.approx(6.06, abs=0.01)
        assert result.value == 6
        assert result.category.label == "Moderate"

    def test_thai_morbidity_uses_pm10(self, calculator):
        result = calculator.compute_health_index({**TYPICAL_BANGKOK, "pm10": 30}, "thai_morbidity")
        assert result.total_risk == pytest.approx(19.38, abs=0.01)
        assert result.value == 2
        assert set(result.contributions) == {"pm25", "pm10", "no2", "o3"}

    def test_polluted_day_is_high(self, calculator):
        result = calculator.compute_health_index({"pm25": 150, "no2": 80, "o3": 100}, "thai_opd")
        assert result.total_risk == pytest.approx(81.83, abs=0.01)
        assert result.value == 8
        assert result.category.label == "High"

    def test_default_variant(self, calculator):
        assert calculator.compute_health_index(TYPICAL_BANGKOK).variant == "thai_opd"

    def test_unknown_variant_raises(self, calculator):
        with pytest.raises(ConfigurationError):
            calculator.compute_health_index(TYPICAL_BANGKOK, "who_2021")

    def test_unknown_default_variant_fails_fast(self):
        with pytest.raises(ConfigurationError):
            HealthIndexCalculator(default_variant="who_2021")


class TestEdgeCases:

    def test_floor_applies_to_clean_air(self, calculator):
        result = calculator.compute_health_index({"pm25": 1}, "thai_opd")
        assert result.value == 1

    def test_no_pollutants_gives_no_value(self, calculator):
        result = calculator.compute_health_index({}, "thai_opd")
        assert result.value is None
        assert result.category is None
        assert result.calculation_method == METHOD_ESTIMATED
        assert result.reason == NO_DATA_REASON
        assert not result.has_value

    def test_missing_pollutants_contribute_nothing(self, calculator):
        result = calculator.compute_health_index({"pm25": 12}, "thai_opd")
        assert list(result.contributions) == ["pm25"]

    def test_absent_pollutant_equals_explicit_none(self, calculator):
        omitted = calculator.compute_health_index({"pm25": 50}, "thai_opd")
        explicit = calculator.compute_health_index({"pm25": 50, "no2": None}, "thai_opd")
        assert explicit.value == omitted.value
        assert explicit.total_risk == omitted.total_risk
        assert "no2" not in explicit.contributions

    def test_adding_a_pollutant_never_lowers_the_value(self, calculator):
        partial = calculator.compute_health_index({"pm25": 150, "no2": 80}, "thai_opd")
        full = calculator.compute_health_index({"pm25": 150, "no2": 80, "o3": 100}, "thai_opd")
        assert full.value >= partial.value
        assert full.total_risk > partial.total_risk

    def test_pollutants_outside_the_variant_are_ignored(self, calculator):
        with_so2 = calculator.compute_health_index({**TYPICAL_BANGKOK, "so2": 40}, "thai_opd")
        assert "so2" not in with_so2.contributions
        assert with_so2.value == 2

    def test_unknown_pollutant_code_raises(self, calculator):
        with pytest.raises(ConfigurationError):
            calculator.compute_health_index({"pm25": 12, "xyz": 3}, "thai_opd")

    def test_negative_concentration_is_treated_as_zero(self, calculator):
        result = calculator.compute_health_index({"pm25": -5, "no2": 25}, "thai_opd")
        assert result.contributions["pm25"] == 0.0

    def test_unknown_calculation_method_raises(self, calculator):
        with pytest.raises(ConfigurationError):
            calculator.compute_health_index(TYPICAL_BANGKOK, calculation_method="guess")


class TestCategories:

    @pytest.mark.parametrize("value,label", [
        (0, "Low"), (3, "Low"), (4, "Moderate"), (6, "Moderate"),
        (7, "High"), (10, "High"), (11, "Very High"), (25, "Very High"),
    ])
    def test_thresholds(self, value, label):
        assert get_category(value).label == label

    def test_no_value_has_no_category(self):
        assert get_category(None) is None


class TestVariantDefinitions:

    def test_mixed_percentage_weighting_is_rejected(self):
        with pytest.raises(ConfigurationError):
            FormulaVariant.build(
                "legacy_mixed", 105.19,
                coefficients={"pm25": 0.0012, "o3": 0.0010, "no2": 0.0052},
                units={"pm25": "μg/m³", "o3": "ppb", "no2": "ppb"},
                percentage_weighted={"pm25": True, "o3": False, "no2": False},
            )

    def test_variant_needs_units_for_every_coefficient(self):
        with pytest.raises(ConfigurationError):
            FormulaVariant.build("broken", 10.4, {"pm25": 0.000487}, units={})

    def test_duplicate_registration_raises(self):
        registry = VariantRegistry()
        with pytest.raises(ConfigurationError):
            registry.register(HEALTH_CANADA)
        registry.register(HEALTH_CANADA, replace=True)
        assert registry.names() == ["health_canada", "thai_morbidity", "thai_opd"]

    def test_variants_from_json(self, tmp_path):
        path = tmp_path / "variants.json"
        path.write_text(json.dumps([{
            "name": "pm_only",
            "scaling_constant": 10.0,
            "coefficients": {"pm2.5": 0.01},
            "units": {"pm2.5": "ug/m3"},
            "percentage_weighted": False,
            "floor": 0,
        }]), encoding="utf-8")

        registry = VariantRegistry()
        assert registry.load_json_file(path) == ["pm_only"]
        calculator = HealthIndexCalculator(registry)
        # (10 / 10) × (e^0.5 - 1) = 0.65 → 1
        assert calculator.compute_health_index({"pm25": 50}, "pm_only").value == 1


class TestUnitsAndReadings:

    def test_variant_units_conversion(self, calculator):
        values = PollutantValues.from_mapping({"no2": 47.0, "pm25": 12})
        converted = calculator.to_variant_units(values, {"no2": "μg/m³", "pm25": "μg/m³"}, "thai_opd")
        assert converted.no2 == pytest.approx(25.0)
        assert converted.pm25 == 12

    def test_single_reading_is_current(self, calculator, now):
        reading = make_reading(now, units={"no2": "ug/m3"}, pm25=12, no2=47.0, o3=60)
        result = calculator.compute_from_reading(reading, "thai_opd")
        assert result.calculation_method == METHOD_CURRENT
        assert result.value == 2
        assert result.reading_count == 1

    def test_index_reading_is_rejected(self, calculator, now):
        reading = make_reading(now, is_index=True, pm25=65)
        with pytest.raises(InvalidReadingError):
            calculator.compute_from_reading(reading)

    def test_result_serialization(self, calculator):
        data = calculator.compute_health_index(TYPICAL_BANGKOK, "thai_opd").to_dict()
        assert data["value"] == 2
        assert data["category"] == "Low"
        assert data["color"] == "#00e400"
