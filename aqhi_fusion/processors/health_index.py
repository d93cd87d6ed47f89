"""
🫁 AIR QUALITY HEALTH INDEX (AQHI) CALCULATOR
============================================
Composite health-risk index from several pollutants using the exponential
relative-risk model:

    r_i  = exp(β_i × x_i) - 1                 (relative risk)
    r_i  = 100 × (exp(β_i × x_i) - 1)         (percentage excess risk, %ER)
    AQHI = (10 / C) × Σ r_i                   rounded, floored at the variant minimum

Several real-world parameter sets exist and the authoritative one is not
settled, so every computation names its formula variant explicitly:

- thai_opd:        Thai Health Department OPD model (C = 105.19)
                   β PM2.5 0.0012 /μg/m³, O₃ 0.0010 /ppb, NO₂ 0.0052 /ppb
- thai_morbidity:  Thai morbidity model (C = 105.19)
                   β PM2.5 0.0022, PM10 0.0009 /μg/m³, O₃ 0.0010, NO₂ 0.0030 /ppb
- health_canada:   Health Canada AQHI (C = 10.4)
                   β PM2.5 0.000487 /μg/m³, NO₂ 0.000871, O₃ 0.000537 /ppb

The percentage weight is a per-variant, per-pollutant setting and must be the
same for every pollutant of a variant. Earlier revisions scaled only PM2.5 by
100; such mixed variants are rejected.

Missing pollutants contribute nothing. With no pollutant at all the result
has no value (method "estimated", reason "no data"), never zero.

Category thresholds (shared by every variant):
- 0-3 Low, 4-6 Moderate, 7-10 High, 11+ Very High
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .models import Reading
from .pollutants import Pollutant, PollutantKey, PollutantValues, normalize_pollutant
from .unit_converter import PPB, UGM3, UnitConverter, normalize_unit
from ..utils.errors import ConfigurationError, InvalidReadingError
from ..utils.rounding import round_to_int

logger = logging.getLogger(__name__)

METHOD_CURRENT = "current"
METHOD_WINDOW_AVERAGE = "windowAverage"
METHOD_ESTIMATED = "estimated"
CALCULATION_METHODS = (METHOD_CURRENT, METHOD_WINDOW_AVERAGE, METHOD_ESTIMATED)

NO_DATA_REASON = "no data"


@dataclass(frozen=True)
class AQHICategory:
    """One band of the AQHI scale"""
    key: str
    label: str
    min_value: int
    max_value: float
    color: str
    description: str

    def contains(self, value: int) -> bool:
        return self.min_value <= value <= self.max_value


AQHI_CATEGORIES: List[AQHICategory] = [
    AQHICategory("LOW", "Low", 0, 3, "#00e400",
                 "Ideal air quality for outdoor activities"),
    AQHICategory("MODERATE", "Moderate", 4, 6, "#ffff00",
                 "No need to modify outdoor activities unless experiencing symptoms"),
    AQHICategory("HIGH", "High", 7, 10, "#ff7e00",
                 "Consider reducing or rescheduling strenuous outdoor activities"),
    AQHICategory("VERY_HIGH", "Very High", 11, math.inf, "#ff0000",
                 "Reduce or reschedule strenuous outdoor activities"),
]


def get_category(value: Optional[int]) -> Optional[AQHICategory]:
    """Category for a rounded AQHI value; None when there is no value"""
    if value is None:
        return None
    for category in AQHI_CATEGORIES:
        if category.contains(value):
            return category
    if value < AQHI_CATEGORIES[0].min_value:
        return AQHI_CATEGORIES[0]
    return AQHI_CATEGORIES[-1]


@dataclass(frozen=True)
class FormulaVariant:
    """Parameter set of one AQHI formula"""
    name: str
    scaling_constant: float
    coefficients: Dict[Pollutant, float]
    percentage_weighted: Dict[Pollutant, bool]
    units: Dict[Pollutant, str]
    floor: int = 1
    description: str = ""

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Formula variant needs a name")
        if self.scaling_constant <= 0:
            raise ConfigurationError(f"Variant {self.name}: scaling constant must be positive")
        if not self.coefficients:
            raise ConfigurationError(f"Variant {self.name}: no pollutant coefficients")

        missing_flags = set(self.coefficients) - set(self.percentage_weighted)
        if missing_flags:
            raise ConfigurationError(
                f"Variant {self.name}: no percentage flag for {sorted(p.value for p in missing_flags)}"
            )
        flags = {self.percentage_weighted[p] for p in self.coefficients}
        if len(flags) > 1:
            raise ConfigurationError(
                f"Variant {self.name}: percentage weighting must apply to every pollutant or none"
            )

        missing_units = set(self.coefficients) - set(self.units)
        if missing_units:
            raise ConfigurationError(
                f"Variant {self.name}: no unit for {sorted(p.value for p in missing_units)}"
            )

    @classmethod
    def build(cls, name: str, scaling_constant: float, coefficients: Mapping[PollutantKey, float],
              units: Mapping[PollutantKey, str],
              percentage_weighted: Union[bool, Mapping[PollutantKey, bool]] = True,
              floor: int = 1, description: str = "") -> 'FormulaVariant':
        betas = {normalize_pollutant(p): float(beta) for p, beta in coefficients.items()}
        if isinstance(percentage_weighted, bool):
            flags = {p: percentage_weighted for p in betas}
        else:
            flags = {normalize_pollutant(p): bool(flag) for p, flag in percentage_weighted.items()}
        return cls(
            name=name,
            scaling_constant=float(scaling_constant),
            coefficients=betas,
            percentage_weighted=flags,
            units={normalize_pollutant(p): normalize_unit(u) for p, u in units.items()},
            floor=int(floor),
            description=description,
        )

    @property
    def pollutants(self) -> List[Pollutant]:
        return list(self.coefficients)

    def risk_term(self, pollutant: Pollutant, concentration: float) -> float:
        risk = math.exp(self.coefficients[pollutant] * concentration) - 1
        if self.percentage_weighted[pollutant]:
            risk *= 100
        return risk


THAI_OPD = FormulaVariant.build(
    "thai_opd", 105.19,
    coefficients={"pm25": 0.0012, "o3": 0.0010, "no2": 0.0052},
    units={"pm25": UGM3, "o3": PPB, "no2": PPB},
    description="Thai Health Department AQHI, OPD visits",
)

THAI_MORBIDITY = FormulaVariant.build(
    "thai_morbidity", 105.19,
    coefficients={"pm25": 0.0022, "pm10": 0.0009, "o3": 0.0010, "no2": 0.0030},
    units={"pm25": UGM3, "pm10": UGM3, "o3": PPB, "no2": PPB},
    description="Thai Health Department AQHI, morbidity coefficients",
)

HEALTH_CANADA = FormulaVariant.build(
    "health_canada", 10.4,
    coefficients={"pm25": 0.000487, "no2": 0.000871, "o3": 0.000537},
    units={"pm25": UGM3, "o3": PPB, "no2": PPB},
    description="Health Canada AQHI",
)

DEFAULT_VARIANTS = (THAI_OPD, THAI_MORBIDITY, HEALTH_CANADA)


class VariantRegistry:
    """Formula variants selectable by name"""

    def __init__(self, variants: Iterable[FormulaVariant] = DEFAULT_VARIANTS):
        self._variants: Dict[str, FormulaVariant] = {}
        for variant in variants:
            self.register(variant)

    def register(self, variant: FormulaVariant, replace: bool = False) -> None:
        if variant.name in self._variants and not replace:
            raise ConfigurationError(f"Formula variant '{variant.name}' is already registered")
        self._variants[variant.name] = variant

    def get(self, name: str) -> FormulaVariant:
        try:
            return self._variants[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown AQHI formula variant '{name}' (known: {', '.join(self.names())})"
            )

    def names(self) -> List[str]:
        return sorted(self._variants)

    def __contains__(self, name: str) -> bool:
        return name in self._variants

    def load_json_file(self, path: Union[str, Path]) -> List[str]:
        """
        Register variants from a JSON list of
        {"name", "scaling_constant", "coefficients", "units", "percentage_weighted", "floor"}
        """
        path = Path(path)
        try:
            documents = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load formula variants from {path}: {e}")

        loaded = []
        for doc in documents:
            try:
                variant = FormulaVariant.build(
                    doc["name"], doc["scaling_constant"], doc["coefficients"], doc["units"],
                    percentage_weighted=doc.get("percentage_weighted", True),
                    floor=doc.get("floor", 1),
                    description=doc.get("description", ""),
                )
            except KeyError as e:
                raise ConfigurationError(f"Formula variant in {path} is missing {e}")
            self.register(variant, replace=True)
            loaded.append(variant.name)

        logger.info(f"🫁 Loaded AQHI variants {loaded} from {path}")
        return loaded


@dataclass
class HealthIndexResult:
    """AQHI outcome for one point (or one set of concentrations)"""
    value: Optional[int]
    category: Optional[AQHICategory]
    contributions: Dict[str, float]
    calculation_method: str
    variant: str
    total_risk: float = 0.0
    reason: Optional[str] = None
    reading_count: int = 0
    quality_tier: Optional[str] = None
    concentrations: Dict[str, float] = field(default_factory=dict)

    @property
    def has_value(self) -> bool:
        return self.value is not None

    def to_dict(self) -> Dict:
        return {
            "value": self.value,
            "category": self.category.label if self.category else None,
            "color": self.category.color if self.category else None,
            "contributions": {k: round(v, 4) for k, v in self.contributions.items()},
            "total_risk": round(self.total_risk, 4),
            "calculation_method": self.calculation_method,
            "variant": self.variant,
            "reason": self.reason,
            "reading_count": self.reading_count,
            "quality_tier": self.quality_tier,
            "concentrations": dict(self.concentrations),
        }


def no_data_result(variant: str, reason: str = NO_DATA_REASON,
                   quality_tier: Optional[str] = None) -> HealthIndexResult:
    return HealthIndexResult(
        value=None,
        category=None,
        contributions={},
        calculation_method=METHOD_ESTIMATED,
        variant=variant,
        reason=reason,
        quality_tier=quality_tier,
    )


ConcentrationInput = Union[PollutantValues, Mapping[PollutantKey, Optional[float]]]


class HealthIndexCalculator:
    """
    Computes AQHI values for a named formula variant
    """

    def __init__(self, registry: Optional[VariantRegistry] = None,
                 default_variant: str = THAI_OPD.name,
                 unit_converter: Optional[UnitConverter] = None):
        self.registry = registry or VariantRegistry()
        self.default_variant = default_variant
        self.unit_converter = unit_converter or UnitConverter()
        # fail fast on a bad default
        self.registry.get(default_variant)

    def compute_health_index(self, concentrations: ConcentrationInput, variant: Optional[str] = None,
                             calculation_method: str = METHOD_WINDOW_AVERAGE) -> HealthIndexResult:
        """
        AQHI from concentrations already expressed in the variant's units.

        Pollutants the variant has no coefficient for are ignored. Unknown
        pollutant codes or variant names raise ConfigurationError.
        """
        formula = self.registry.get(variant or self.default_variant)
        if calculation_method not in CALCULATION_METHODS:
            raise ConfigurationError(f"Unknown calculation method '{calculation_method}'")

        if not isinstance(concentrations, PollutantValues):
            concentrations = PollutantValues.from_mapping(concentrations)

        contributions: Dict[str, float] = {}
        used: Dict[str, float] = {}
        for pollutant in formula.pollutants:
            value = concentrations.get(pollutant)
            if value is None or math.isnan(value):
                continue
            if value < 0:
                logger.warning(f"⚠️ Negative {pollutant.value} concentration {value}, using 0")
                value = 0.0
            contributions[pollutant.value] = formula.risk_term(pollutant, value)
            used[pollutant.value] = value

        if not contributions:
            logger.debug(f"No {formula.name} pollutants available, AQHI not computed")
            return no_data_result(formula.name)

        total_risk = sum(contributions.values())
        raw_value = (10.0 / formula.scaling_constant) * total_risk
        value = max(formula.floor, round_to_int(raw_value))

        logger.debug(
            f"🎯 {formula.name} risk: "
            + ", ".join(f"{k}={v:.4f}" for k, v in contributions.items())
            + f", total={total_risk:.4f} → AQHI {raw_value:.2f} → {value}"
        )

        return HealthIndexResult(
            value=value,
            category=get_category(value),
            contributions=contributions,
            calculation_method=calculation_method,
            variant=formula.name,
            total_risk=total_risk,
            concentrations=used,
        )

    def to_variant_units(self, values: PollutantValues, units: Mapping[str, str],
                         variant: Optional[str] = None) -> PollutantValues:
        """
        Express ``values`` (whose units are given per pollutant code) in the
        units the variant's coefficients are defined for.
        """
        formula = self.registry.get(variant or self.default_variant)
        converted = values
        for pollutant, value in values.present():
            if pollutant not in formula.units:
                continue
            unit = units.get(pollutant.value)
            if unit is None:
                continue
            target = formula.units[pollutant]
            converted = converted.with_value(
                pollutant, self.unit_converter.convert(value, unit, target, pollutant)
            )
        return converted

    def compute_from_reading(self, reading: Reading, variant: Optional[str] = None) -> HealthIndexResult:
        """AQHI from a single concentration reading (method "current")"""
        if reading.is_index:
            raise InvalidReadingError("Convert index readings to concentrations before computing AQHI")

        values = self.to_variant_units(reading.values, reading.units, variant)
        result = self.compute_health_index(values, variant, calculation_method=METHOD_CURRENT)
        if result.has_value:
            result.reading_count = 1
        return result
