"""
📐 AQI BREAKPOINT TABLES
=======================
Official US EPA AQI breakpoint tables (PM2.5 revision of May 2024) used to
turn a 0-500 sub-index back into a concentration.

Each entry maps an index band onto a concentration band in the pollutant's
native EPA unit:
- PM2.5 / PM10: μg/m³, 24-hour average
- O₃: ppm, 8-hour average (1-hour table only starts at index 101)
- CO: ppm, 8-hour average
- NO₂ / SO₂: ppb, 1-hour average

Published tables leave a one-unit gap between bands (50 → 51); bands must be
ordered, non-overlapping and no further apart than that.

The table is static, versioned configuration. It can be replaced at startup
from a JSON document:

    {"version": "...", "entries": [{"pollutant": "pm25", "period": "24h",
      "index_low": 0, "index_high": 50, "conc_low": 0.0, "conc_high": 9.0,
      "unit": "μg/m³"}, ...]}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .pollutants import Pollutant, PollutantKey, normalize_pollutant
from .unit_converter import PPB, PPM, UGM3, normalize_unit
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

EPA_TABLE_VERSION = "epa-2024-05"

# Averaging period used when the caller does not ask for one
DEFAULT_PERIODS = {
    Pollutant.PM25: "24h",
    Pollutant.PM10: "24h",
    Pollutant.O3: "8h",
    Pollutant.CO: "8h",
    Pollutant.NO2: "1h",
    Pollutant.SO2: "1h",
}

_PERIOD_ALIASES = {
    '1h': '1h', '1hr': '1h', '1-hour': '1h', '1hour': '1h',
    '8h': '8h', '8hr': '8h', '8-hour': '8h', '8hour': '8h',
    '24h': '24h', '24hr': '24h', '24-hour': '24h', '24hour': '24h',
}


def normalize_period(period: str) -> str:
    key = str(period).strip().lower()
    if key not in _PERIOD_ALIASES:
        raise ConfigurationError(f"Unknown averaging period: {period!r}")
    return _PERIOD_ALIASES[key]


@dataclass(frozen=True)
class BreakpointEntry:
    """One (index band ↔ concentration band) pair"""
    pollutant: Pollutant
    averaging_period: str
    index_low: float
    index_high: float
    conc_low: float
    conc_high: float
    native_unit: str

    def contains(self, index: float) -> bool:
        return self.index_low <= index <= self.index_high

    def interpolate(self, index: float) -> float:
        """Reverse EPA interpolation: C = (I - Ilo)/(Ihi - Ilo) × (Chi - Clo) + Clo"""
        return ((index - self.index_low) / (self.index_high - self.index_low)) * \
            (self.conc_high - self.conc_low) + self.conc_low

    def forward(self, concentration: float) -> float:
        """EPA interpolation: I = (Ihi - Ilo)/(Chi - Clo) × (C - Clo) + Ilo"""
        return ((self.index_high - self.index_low) / (self.conc_high - self.conc_low)) * \
            (concentration - self.conc_low) + self.index_low


# (index_low, index_high, conc_low, conc_high)
_EPA_BANDS: Dict[Tuple[Pollutant, str, str], List[Tuple[float, float, float, float]]] = {
    (Pollutant.PM25, "24h", UGM3): [
        (0, 50, 0.0, 9.0),
        (51, 100, 9.1, 35.4),
        (101, 150, 35.5, 55.4),
        (151, 200, 55.5, 125.4),
        (201, 300, 125.5, 225.4),
        (301, 400, 225.5, 325.4),
        (401, 500, 325.5, 500.4),
    ],
    (Pollutant.PM10, "24h", UGM3): [
        (0, 50, 0, 54),
        (51, 100, 55, 154),
        (101, 150, 155, 254),
        (151, 200, 255, 354),
        (201, 300, 355, 424),
        (301, 400, 425, 504),
        (401, 500, 505, 604),
    ],
    (Pollutant.O3, "8h", PPM): [
        (0, 50, 0.000, 0.054),
        (51, 100, 0.055, 0.070),
        (101, 150, 0.071, 0.085),
        (151, 200, 0.086, 0.105),
        (201, 300, 0.106, 0.200),
    ],
    (Pollutant.O3, "1h", PPM): [
        (101, 150, 0.125, 0.164),
        (151, 200, 0.165, 0.204),
        (201, 300, 0.205, 0.404),
        (301, 400, 0.405, 0.504),
        (401, 500, 0.505, 0.604),
    ],
    (Pollutant.CO, "8h", PPM): [
        (0, 50, 0.0, 4.4),
        (51, 100, 4.5, 9.4),
        (101, 150, 9.5, 12.4),
        (151, 200, 12.5, 15.4),
        (201, 300, 15.5, 30.4),
        (301, 400, 30.5, 40.4),
        (401, 500, 40.5, 50.4),
    ],
    (Pollutant.NO2, "1h", PPB): [
        (0, 50, 0, 53),
        (51, 100, 54, 100),
        (101, 150, 101, 360),
        (151, 200, 361, 649),
        (201, 300, 650, 1249),
        (301, 400, 1250, 1649),
        (401, 500, 1650, 2049),
    ],
    (Pollutant.SO2, "1h", PPB): [
        (0, 50, 0, 35),
        (51, 100, 36, 75),
        (101, 150, 76, 185),
        (151, 200, 186, 304),
        (201, 300, 305, 604),
        (301, 400, 605, 804),
        (401, 500, 805, 1004),
    ],
}


class BreakpointTable:
    """
    Validated, immutable breakpoint lookup keyed by (pollutant, period)
    """

    MAX_BAND_GAP = 1.0

    def __init__(self, entries: Iterable[BreakpointEntry], version: str = "custom",
                 default_periods: Optional[Dict[Pollutant, str]] = None):
        self.version = version
        self._tables: Dict[Tuple[Pollutant, str], Tuple[BreakpointEntry, ...]] = {}

        grouped: Dict[Tuple[Pollutant, str], List[BreakpointEntry]] = {}
        for entry in entries:
            grouped.setdefault((entry.pollutant, entry.averaging_period), []).append(entry)

        for key, group in grouped.items():
            ordered = sorted(group, key=lambda e: e.index_low)
            self._validate(key, ordered)
            self._tables[key] = tuple(ordered)

        self._default_periods = dict(DEFAULT_PERIODS)
        if default_periods:
            self._default_periods.update(default_periods)

        logger.debug(f"📐 Breakpoint table {version}: {len(self._tables)} pollutant/period tables")

    def _validate(self, key: Tuple[Pollutant, str], entries: List[BreakpointEntry]) -> None:
        pollutant, period = key
        label = f"{pollutant.value}/{period}"

        units = {e.native_unit for e in entries}
        if len(units) > 1:
            raise ConfigurationError(f"Breakpoints for {label} mix units: {sorted(units)}")

        previous = None
        for entry in entries:
            if not entry.index_low < entry.index_high:
                raise ConfigurationError(
                    f"Breakpoint {label} index band {entry.index_low}-{entry.index_high} is empty"
                )
            if not entry.conc_low < entry.conc_high:
                raise ConfigurationError(
                    f"Breakpoint {label} concentration band {entry.conc_low}-{entry.conc_high} is empty"
                )
            if previous is not None:
                gap = entry.index_low - previous.index_high
                if gap < 0:
                    raise ConfigurationError(
                        f"Breakpoint {label} bands overlap at index {entry.index_low}"
                    )
                if gap > self.MAX_BAND_GAP:
                    raise ConfigurationError(
                        f"Breakpoint {label} bands are not contiguous between "
                        f"{previous.index_high} and {entry.index_low}"
                    )
                if entry.conc_low < previous.conc_high:
                    raise ConfigurationError(
                        f"Breakpoint {label} concentration bands overlap at {entry.conc_low}"
                    )
            previous = entry

    def default_period(self, pollutant: PollutantKey) -> str:
        pollutant = normalize_pollutant(pollutant)
        if pollutant in self._default_periods:
            return self._default_periods[pollutant]
        periods = self.periods_for(pollutant)
        if not periods:
            raise ConfigurationError(f"No breakpoints configured for {pollutant.value}")
        return periods[0]

    def periods_for(self, pollutant: PollutantKey) -> List[str]:
        pollutant = normalize_pollutant(pollutant)
        return sorted(period for (p, period) in self._tables if p == pollutant)

    def entries_for(self, pollutant: PollutantKey, period: Optional[str] = None) -> Tuple[BreakpointEntry, ...]:
        """
        Ordered entries for ``pollutant`` and ``period`` (default period when
        omitted). Raises ConfigurationError if no such table exists.
        """
        pollutant = normalize_pollutant(pollutant)
        period = normalize_period(period) if period else self.default_period(pollutant)

        entries = self._tables.get((pollutant, period))
        if not entries:
            raise ConfigurationError(
                f"No breakpoints configured for {pollutant.value} ({period} average)"
            )
        return entries

    def native_unit(self, pollutant: PollutantKey, period: Optional[str] = None) -> str:
        return self.entries_for(pollutant, period)[0].native_unit

    def __iter__(self):
        for key in sorted(self._tables, key=lambda k: (k[0].value, k[1])):
            yield from self._tables[key]

    def to_dict(self) -> Dict:
        return {
            "version": self.version,
            "entries": [
                {
                    "pollutant": e.pollutant.value,
                    "period": e.averaging_period,
                    "index_low": e.index_low,
                    "index_high": e.index_high,
                    "conc_low": e.conc_low,
                    "conc_high": e.conc_high,
                    "unit": e.native_unit,
                }
                for e in self
            ],
        }

    @classmethod
    def from_dict(cls, document: Dict) -> 'BreakpointTable':
        try:
            raw_entries = document["entries"]
        except (KeyError, TypeError):
            raise ConfigurationError("Breakpoint document needs an 'entries' list")

        entries = []
        for raw in raw_entries:
            try:
                entries.append(BreakpointEntry(
                    pollutant=normalize_pollutant(raw["pollutant"]),
                    averaging_period=normalize_period(raw["period"]),
                    index_low=float(raw["index_low"]),
                    index_high=float(raw["index_high"]),
                    conc_low=float(raw["conc_low"]),
                    conc_high=float(raw["conc_high"]),
                    native_unit=normalize_unit(raw["unit"]),
                ))
            except KeyError as e:
                raise ConfigurationError(f"Breakpoint entry {raw!r} is missing {e}")

        return cls(entries, version=str(document.get("version", "custom")))

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'BreakpointTable':
        path = Path(path)
        try:
            document = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load breakpoint table from {path}: {e}")

        table = cls.from_dict(document)
        logger.info(f"📐 Loaded breakpoint table {table.version} from {path}")
        return table


def epa_breakpoint_table() -> BreakpointTable:
    """The built-in EPA table"""
    entries = [
        BreakpointEntry(pollutant, period, float(i_lo), float(i_hi), float(c_lo), float(c_hi), unit)
        for (pollutant, period, unit), bands in _EPA_BANDS.items()
        for i_lo, i_hi, c_lo, c_hi in bands
    ]
    return BreakpointTable(entries, version=EPA_TABLE_VERSION)
