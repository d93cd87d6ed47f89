"""
🧪 UNIT CONVERTER
================
Molar-fraction (ppb/ppm) ↔ mass-concentration (μg/m³, mg/m³) conversion.

At 25 °C and 1 atm one ppb of a gas weighs K μg/m³ (and one ppm weighs
K mg/m³), with K = M × P / (R × T) × 1e-3. The published factors are used as
fixed constants so results match the feeds that quote them:
- O₃:  1 ppb = 1.962 μg/m³  (1 ppm = 1962 μg/m³)
- NO₂: 1 ppb = 1.88 μg/m³
- SO₂: 1 ppb = 2.62 μg/m³
- CO:  1 ppm = 1.15 mg/m³

Particulates (PM2.5, PM10) only exist as mass concentrations.

Conversions are pure linear scales. A molar → molar conversion (ppm → ppb)
goes through the mass unit, so each leg can be checked on its own.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .pollutants import Pollutant, PollutantKey, normalize_pollutant
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

PPB = "ppb"
PPM = "ppm"
UGM3 = "μg/m³"
MGM3 = "mg/m³"

MOLAR_UNITS = {PPB: 1.0, PPM: 1000.0}      # expressed in ppb
MASS_UNITS = {UGM3: 1.0, MGM3: 1000.0}     # expressed in μg/m³

_UNIT_ALIASES = {
    'ppb': PPB,
    'parts_per_billion': PPB,
    'ppm': PPM,
    'parts_per_million': PPM,
    'μg/m³': UGM3,
    'µg/m³': UGM3,
    'μg/m3': UGM3,
    'µg/m3': UGM3,
    'ug/m3': UGM3,
    'ug/m³': UGM3,
    'ugm3': UGM3,
    'micrograms_per_cubic_meter': UGM3,
    'mg/m³': MGM3,
    'mg/m3': MGM3,
    'mgm3': MGM3,
    'milligrams_per_cubic_meter': MGM3,
}

# Published 25 °C / 1 atm factors: μg/m³ per ppb (equivalently mg/m³ per ppm)
STANDARD_MASS_FACTORS: Dict[Pollutant, float] = {
    Pollutant.O3: 1.962,
    Pollutant.NO2: 1.88,
    Pollutant.SO2: 2.62,
    Pollutant.CO: 1.15,
}

# Units readings are stored and averaged in (the EPA native units)
CANONICAL_UNITS: Dict[Pollutant, str] = {
    Pollutant.PM25: UGM3,
    Pollutant.PM10: UGM3,
    Pollutant.O3: PPB,
    Pollutant.NO2: PPB,
    Pollutant.SO2: PPB,
    Pollutant.CO: PPM,
}

MOLAR_MASSES = {
    Pollutant.NO2: 46.0055,   # g/mol
    Pollutant.SO2: 64.066,    # g/mol
    Pollutant.CO: 28.010,     # g/mol
    Pollutant.O3: 47.9982,    # g/mol
}
R_GAS_CONSTANT = 8.314462618  # J/(mol·K)
STANDARD_TEMP_K = 298.15
STANDARD_PRESSURE_PA = 101325.0


def normalize_unit(unit: str) -> str:
    key = str(unit).strip().lower().replace(' ', '_')
    if key in _UNIT_ALIASES:
        return _UNIT_ALIASES[key]
    raise ConfigurationError(f"Unknown concentration unit: {unit!r}")


def is_molar_unit(unit: str) -> bool:
    return normalize_unit(unit) in MOLAR_UNITS


def is_mass_unit(unit: str) -> bool:
    return normalize_unit(unit) in MASS_UNITS


class UnitConverter:
    """
    Linear unit conversion driven by a per-pollutant mass factor table
    """

    def __init__(self, mass_factors: Optional[Mapping[PollutantKey, float]] = None):
        factors = STANDARD_MASS_FACTORS if mass_factors is None else mass_factors
        self.mass_factors: Dict[Pollutant, float] = {}
        for pollutant, factor in factors.items():
            pollutant = normalize_pollutant(pollutant)
            if pollutant.is_particulate:
                raise ConfigurationError(f"{pollutant.value} has no molar form, drop its mass factor")
            if factor <= 0:
                raise ConfigurationError(f"Mass factor for {pollutant.value} must be positive")
            self.mass_factors[pollutant] = float(factor)

    @classmethod
    def from_molar_masses(cls, temp_K: float = STANDARD_TEMP_K,
                          pressure_Pa: float = STANDARD_PRESSURE_PA) -> 'UnitConverter':
        """
        Build factors from the ideal gas law for local conditions
        μg/m³ = ppb × (M × P) / (R × T) × 1e-3
        """
        factors = {
            pollutant: molar_mass * pressure_Pa / (R_GAS_CONSTANT * temp_K) * 1e-3
            for pollutant, molar_mass in MOLAR_MASSES.items()
        }
        return cls(factors)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'UnitConverter':
        """Factors from a JSON object such as {"o3": 1.962, "no2": 1.88}"""
        path = Path(path)
        try:
            factors = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load unit factors from {path}: {e}")
        if not isinstance(factors, dict):
            raise ConfigurationError(f"Unit factors in {path} must be a JSON object")

        logger.info(f"🧪 Loaded mass factors for {sorted(factors)} from {path}")
        return cls(factors)

    def mass_factor(self, pollutant: PollutantKey) -> float:
        pollutant = normalize_pollutant(pollutant)
        if pollutant.is_particulate:
            raise ConfigurationError(
                f"{pollutant.value} is a particulate, it has no molar-fraction unit"
            )
        if pollutant not in self.mass_factors:
            raise ConfigurationError(f"No mass conversion factor for {pollutant.value}")
        return self.mass_factors[pollutant]

    def to_mass_concentration(self, value: float, native_unit: str, pollutant: PollutantKey,
                              mass_unit: Optional[str] = None) -> float:
        """
        Convert ``value`` from ``native_unit`` into a mass concentration.

        Without ``mass_unit``, ppb maps to μg/m³ and ppm to mg/m³ (the factor
        is the same number for both). Mass inputs are only rescaled.
        """
        pollutant = normalize_pollutant(pollutant)
        native_unit = normalize_unit(native_unit)

        if native_unit in MASS_UNITS:
            target = normalize_unit(mass_unit) if mass_unit else native_unit
            self._require_mass(target)
            return value * MASS_UNITS[native_unit] / MASS_UNITS[target]

        if mass_unit is None:
            target = UGM3 if native_unit == PPB else MGM3
        else:
            target = normalize_unit(mass_unit)
            self._require_mass(target)

        value_ppb = value * MOLAR_UNITS[native_unit]
        value_ugm3 = value_ppb * self.mass_factor(pollutant)
        return value_ugm3 / MASS_UNITS[target]

    def from_mass_concentration(self, value: float, mass_unit: str, pollutant: PollutantKey,
                                molar_unit: str = PPB) -> float:
        """Inverse of ``to_mass_concentration``: mass concentration → ppb/ppm"""
        pollutant = normalize_pollutant(pollutant)
        mass_unit = normalize_unit(mass_unit)
        molar_unit = normalize_unit(molar_unit)
        self._require_mass(mass_unit)
        if molar_unit not in MOLAR_UNITS:
            raise ConfigurationError(f"{molar_unit} is not a molar-fraction unit")

        value_ugm3 = value * MASS_UNITS[mass_unit]
        value_ppb = value_ugm3 / self.mass_factor(pollutant)
        return value_ppb / MOLAR_UNITS[molar_unit]

    def convert(self, value: float, from_unit: str, to_unit: str, pollutant: PollutantKey) -> float:
        """Convert between any two supported units for ``pollutant``"""
        pollutant = normalize_pollutant(pollutant)
        from_unit = normalize_unit(from_unit)
        to_unit = normalize_unit(to_unit)

        if from_unit == to_unit:
            return value

        if to_unit in MASS_UNITS:
            return self.to_mass_concentration(value, from_unit, pollutant, to_unit)

        if from_unit in MASS_UNITS:
            return self.from_mass_concentration(value, from_unit, pollutant, to_unit)

        # molar → molar through the mass unit
        mass_value = self.to_mass_concentration(value, from_unit, pollutant, UGM3)
        return self.from_mass_concentration(mass_value, UGM3, pollutant, to_unit)

    @staticmethod
    def _require_mass(unit: str) -> None:
        if unit not in MASS_UNITS:
            raise ConfigurationError(f"{unit} is not a mass-concentration unit")
