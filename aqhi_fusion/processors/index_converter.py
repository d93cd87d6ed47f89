"""
🔄 AQI INDEX ↔ CONCENTRATION CONVERTER
=====================================
Feeds such as WAQI publish per-pollutant US EPA sub-indices (0-500), not
concentrations. The health index needs concentrations, so the EPA
interpolation is run backwards:

    C = ((I - I_lo) / (I_hi - I_lo)) × (C_hi - C_lo) + C_lo

- The band is picked by I_lo ≤ I ≤ I_hi on the (pollutant, period) table
- An index no band contains gives None: below the first band, above the
  last one, or between two published bands (e.g. 50.5). The converter
  never extrapolates or snaps to a neighbouring band
- Results are rounded to 2 decimals in the requested unit

Converting into another unit is an explicit chain, each step callable on its
own: index → native unit (breakpoints) → mass unit → target unit.
"""

import logging
import math
from numbers import Real
from typing import Optional

from .breakpoints import BreakpointEntry, BreakpointTable, epa_breakpoint_table
from .pollutants import PollutantKey, normalize_pollutant
from .unit_converter import UnitConverter, normalize_unit
from ..utils.rounding import round_half_up, round_to_int

logger = logging.getLogger(__name__)


def _is_valid_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


class IndexConverter:
    """
    Reverse (and forward) EPA interpolation over a BreakpointTable
    """

    def __init__(self, table: Optional[BreakpointTable] = None,
                 unit_converter: Optional[UnitConverter] = None):
        self.table = table or epa_breakpoint_table()
        self.unit_converter = unit_converter or UnitConverter()

    def _native_concentration(self, index: float, pollutant: PollutantKey,
                              period: Optional[str]) -> Optional[float]:
        entries = self.table.entries_for(pollutant, period)

        if not _is_valid_number(index) or index < 0:
            logger.debug(f"Ignoring invalid index {index!r} for {pollutant}")
            return None

        if index < entries[0].index_low or index > entries[-1].index_high:
            logger.debug(
                f"⚠️ Index {index} outside {entries[0].index_low}-{entries[-1].index_high} "
                f"for {normalize_pollutant(pollutant).value}"
            )
            return None

        for entry in entries:
            if entry.contains(index):
                return entry.interpolate(index)

        logger.debug(f"⚠️ Index {index} falls between published bands for {normalize_pollutant(pollutant).value}")
        return None

    def index_to_concentration(self, index: float, pollutant: PollutantKey,
                               period: Optional[str] = None) -> Optional[float]:
        """
        Concentration in the table's native unit for ``pollutant``/``period``,
        or None when ``index`` is outside the published scale.

        Raises ConfigurationError for an unknown pollutant or period.
        """
        concentration = self._native_concentration(index, pollutant, period)
        if concentration is None:
            return None
        return round_half_up(concentration, 2)

    def index_to_mass_concentration(self, index: float, pollutant: PollutantKey,
                                    period: Optional[str] = None,
                                    mass_unit: Optional[str] = None) -> Optional[float]:
        """Index → native unit → mass concentration"""
        concentration = self._native_concentration(index, pollutant, period)
        if concentration is None:
            return None
        native_unit = self.table.native_unit(pollutant, period)
        mass = self.unit_converter.to_mass_concentration(concentration, native_unit, pollutant, mass_unit)
        return round_half_up(mass, 2)

    def index_to_unit(self, index: float, pollutant: PollutantKey, target_unit: str,
                      period: Optional[str] = None) -> Optional[float]:
        """
        Index → native unit → mass unit → ``target_unit``.

        e.g. an O₃ 8-hour index resolves to ppm, is weighed as mg/m³, then
        expressed in the ppb the health formula expects.
        """
        concentration = self._native_concentration(index, pollutant, period)
        if concentration is None:
            return None

        native_unit = self.table.native_unit(pollutant, period)
        target_unit = normalize_unit(target_unit)
        if target_unit == native_unit:
            return round_half_up(concentration, 2)

        converted = self.unit_converter.convert(concentration, native_unit, target_unit, pollutant)
        logger.debug(
            f"🔄 {normalize_pollutant(pollutant).value}: index {index} → "
            f"{concentration:.4f} {native_unit} → {converted:.4f} {target_unit}"
        )
        return round_half_up(converted, 2)

    def concentration_to_index(self, concentration: float, pollutant: PollutantKey,
                               period: Optional[str] = None,
                               unit: Optional[str] = None) -> Optional[int]:
        """
        Forward EPA interpolation, rounded to a whole index.

        ``unit`` is the unit of ``concentration`` (native unit when omitted).
        Concentrations no band contains (above the top band or between two
        published bands) give None.
        """
        entries = self.table.entries_for(pollutant, period)

        if not _is_valid_number(concentration) or concentration < 0:
            return None

        if unit is not None:
            native_unit = entries[0].native_unit
            concentration = self.unit_converter.convert(concentration, unit, native_unit, pollutant)

        if concentration < entries[0].conc_low or concentration > entries[-1].conc_high:
            return None

        matched: Optional[BreakpointEntry] = None
        for entry in entries:
            if entry.conc_low <= concentration <= entry.conc_high:
                matched = entry
                break

        if matched is None:
            return None
        return round_to_int(matched.forward(concentration))
