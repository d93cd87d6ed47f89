#!/usr/bin/env python3
"""
🔬 MULTI-SOURCE AQHI FUSION ENGINE
=================================
Wires the converters, matcher, window aggregator and AQHI calculator into one
pipeline:

    raw reading ─► index/unit conversion ─► nearest-station matching ─►
    rolling window log ─► window means ─► AQHI

SOURCES:
- Primary feed (WAQI stations): per-pollutant AQI sub-indices at station ids
- Supplemental feeds (Google Air Quality, OpenWeather): concentrations at grid
  coordinates, only used for pollutants the stations do not report

AQHI FALLBACK LADDER for one point:
1. Mean of the 3-hour window ("windowAverage")
2. Latest single reading when the window is empty ("current")
3. No value at all ("estimated", reason "no data")

The engine performs no network or database I/O: collectors hand it readings,
callers ask it for windows and AQHI results.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

from .breakpoints import BreakpointTable, epa_breakpoint_table
from .data_quality import ESTIMATED
from .health_index import (
    METHOD_WINDOW_AVERAGE, HealthIndexCalculator, HealthIndexResult, VariantRegistry, no_data_result,
)
from .index_converter import IndexConverter
from .models import MonitoringPoint, Reading
from .point_matcher import NearestPointMatcher, PointRegistry
from .pollutants import PollutantValues
from .unit_converter import CANONICAL_UNITS, UnitConverter
from .window_aggregator import AggregateWindow, WindowAggregator
from ..utils.settings import Settings, load_settings
from ..utils.time_utils import TimestampLike

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """Outcome counters for a batch of readings"""
    stored: int = 0
    replaced: int = 0
    unmatched: int = 0
    empty: int = 0
    dropped_values: int = 0
    unmatched_sources: Dict[str, int] = field(default_factory=dict)

    @property
    def accepted(self) -> int:
        return self.stored + self.replaced


class AirQualityFusionEngine:
    """
    Ingests feed readings and serves rolling windows and AQHI results
    """

    def __init__(self, settings: Optional[Settings] = None,
                 breakpoint_table: Optional[BreakpointTable] = None,
                 unit_converter: Optional[UnitConverter] = None,
                 variant_registry: Optional[VariantRegistry] = None):
        self.settings = settings or Settings()

        if breakpoint_table is None:
            if self.settings.breakpoint_file:
                breakpoint_table = BreakpointTable.from_json_file(self.settings.breakpoint_file)
            else:
                breakpoint_table = epa_breakpoint_table()

        if variant_registry is None:
            variant_registry = VariantRegistry()
            if self.settings.variant_file:
                variant_registry.load_json_file(self.settings.variant_file)

        if unit_converter is None:
            if self.settings.unit_factor_file:
                unit_converter = UnitConverter.from_json_file(self.settings.unit_factor_file)
            else:
                unit_converter = UnitConverter()

        self.unit_converter = unit_converter
        self.index_converter = IndexConverter(breakpoint_table, self.unit_converter)
        self.calculator = HealthIndexCalculator(
            variant_registry, self.settings.default_variant, self.unit_converter
        )
        self.matcher = NearestPointMatcher(self.settings.match_max_distance_km)
        self.points = PointRegistry()
        self.aggregator = WindowAggregator(
            primary_source=self.settings.primary_source,
            secondary_sources=self.settings.secondary_sources,
            window_hours=self.settings.window_hours,
        )

        logger.info(
            f"🔬 Fusion engine ready: primary={self.settings.primary_source}, "
            f"secondary={self.settings.secondary_sources}, variant={self.settings.default_variant}, "
            f"breakpoints={breakpoint_table.version}"
        )

    @classmethod
    def from_env(cls) -> 'AirQualityFusionEngine':
        return cls(load_settings())

    # ---------------------------------------------------------------- points

    def register_point(self, point: MonitoringPoint) -> MonitoringPoint:
        return self.points.observe(point)

    def deactivate_point(self, point_id: str) -> MonitoringPoint:
        return self.points.deactivate(point_id)

    def purge_before(self, cutoff: TimestampLike, point_id: Optional[str] = None) -> int:
        """Retention hook: drop stored readings older than ``cutoff``"""
        return self.aggregator.purge_before(cutoff, point_id)

    # ------------------------------------------------------------- ingestion

    def normalize_reading(self, reading: Reading) -> Optional[Reading]:
        """
        Express ``reading`` as concentrations in canonical units.

        Index values outside the published scale are dropped; returns None
        when nothing usable is left.
        """
        converted: Dict[str, float] = {}
        units: Dict[str, str] = {}

        for pollutant, value in reading.values.present():
            target_unit = CANONICAL_UNITS[pollutant]
            if reading.is_index:
                concentration = self.index_converter.index_to_unit(value, pollutant, target_unit)
                if concentration is None:
                    logger.warning(
                        f"⚠️ {reading.source} {pollutant.value} index {value} is outside the AQI scale, dropped"
                    )
                    continue
            else:
                unit = reading.unit_for(pollutant) or target_unit
                concentration = self.unit_converter.convert(value, unit, target_unit, pollutant)
            converted[pollutant.value] = concentration
            units[pollutant.value] = target_unit

        if not converted:
            return None

        return Reading(
            timestamp=reading.timestamp,
            source=reading.source,
            values=PollutantValues.from_mapping(converted),
            point_id=reading.point_id,
            coordinates=reading.coordinates,
            is_index=False,
            units=units,
        )

    def resolve_point(self, reading: Reading) -> Optional[Reading]:
        """
        Attach a point id: primary readings register their station on first
        sight, coordinate-only readings are matched to the nearest station.
        """
        if reading.point_id is not None:
            if reading.point_id not in self.points and reading.coordinates is not None \
                    and reading.source == self.settings.primary_source:
                lat, lon = reading.coordinates
                self.points.observe(MonitoringPoint(reading.point_id, lat, lon))
            return reading

        point_id = self.matcher.match_to_nearest_point(reading.coordinates, self.points.active_points())
        if point_id is None:
            logger.warning(
                f"📍 {reading.source} reading at {reading.coordinates} has no station within "
                f"{self.matcher.max_distance_km} km, not fused"
            )
            return None

        return replace(reading, point_id=point_id)

    def ingest(self, reading: Reading, report: Optional[IngestReport] = None) -> Optional[Reading]:
        """Convert, match and store one reading; returns the stored reading or None"""
        report = report if report is not None else IngestReport()

        normalized = self.normalize_reading(reading)
        original_count = sum(1 for _ in reading.values.present())
        if normalized is None:
            report.empty += 1
            report.dropped_values += original_count
            return None
        report.dropped_values += original_count - sum(1 for _ in normalized.values.present())

        resolved = self.resolve_point(normalized)
        if resolved is None:
            report.unmatched += 1
            report.unmatched_sources[reading.source] = report.unmatched_sources.get(reading.source, 0) + 1
            return None

        if self.aggregator.append(resolved):
            report.stored += 1
        else:
            report.replaced += 1
        return resolved

    def ingest_many(self, readings: Iterable[Reading]) -> IngestReport:
        report = IngestReport()
        for reading in readings:
            self.ingest(reading, report)

        logger.info(
            f"💾 Ingested {report.accepted} readings ({report.replaced} replaced), "
            f"{report.unmatched} unmatched, {report.empty} without usable values"
        )
        return report

    # --------------------------------------------------------------- queries

    def get_window(self, point_id: str, now: TimestampLike) -> AggregateWindow:
        return self.aggregator.get_window(point_id, now)

    def compute_point_health_index(self, point_id: str, now: TimestampLike,
                                   variant: Optional[str] = None) -> HealthIndexResult:
        """AQHI for one point following the window → latest reading → no data ladder"""
        formula = self.calculator.registry.get(variant or self.settings.default_variant)
        variant_name = formula.name
        window = self.aggregator.get_window(point_id, now)

        if not window.is_empty:
            values = self.calculator.to_variant_units(window.means(), window.units(), variant_name)
            result = self.calculator.compute_health_index(values, variant_name, METHOD_WINDOW_AVERAGE)
            if result.has_value:
                result.reading_count = window.total_reading_count
                result.quality_tier = window.quality_tier
                logger.info(
                    f"🫁 AQHI {point_id}: {result.value} ({result.category.label}) from "
                    f"{window.total_reading_count} readings, {window.quality_tier}, {window.data_sources}"
                )
                return result

        latest = self.aggregator.latest_reading(point_id, now, pollutants=formula.pollutants)
        if latest is not None:
            result = self.calculator.compute_from_reading(latest, variant_name)
            if result.has_value:
                result.quality_tier = ESTIMATED
                logger.info(f"🫁 AQHI {point_id}: {result.value} from latest single reading")
                return result

        logger.info(f"⚠️ No data to compute AQHI for {point_id}")
        return no_data_result(variant_name, quality_tier=ESTIMATED)

    def compute_all(self, now: TimestampLike, variant: Optional[str] = None) -> Dict[str, HealthIndexResult]:
        """AQHI for every active point"""
        return {
            point.point_id: self.compute_point_health_index(point.point_id, now, variant)
            for point in self.points.active_points()
        }

    def active_point_ids(self) -> List[str]:
        return [p.point_id for p in self.points.active_points()]
