"""
Processors Package
Index/unit conversion, station matching, rolling windows and AQHI computation
"""

from .pollutants import Pollutant, PollutantValues, normalize_pollutant
from .models import Measurement, MonitoringPoint, Reading
from .unit_converter import UnitConverter, CANONICAL_UNITS, PPB, PPM, UGM3, MGM3
from .breakpoints import BreakpointEntry, BreakpointTable, epa_breakpoint_table
from .index_converter import IndexConverter
from .health_index import (
    AQHI_CATEGORIES, FormulaVariant, HealthIndexCalculator, HealthIndexResult, VariantRegistry, get_category,
)
from .data_quality import classify_quality
from .point_matcher import NearestPointMatcher, PointRegistry
from .window_aggregator import AggregateWindow, WindowAggregator
from .fusion_engine import AirQualityFusionEngine, IngestReport

__all__ = [
    'Pollutant',
    'PollutantValues',
    'normalize_pollutant',
    'Measurement',
    'MonitoringPoint',
    'Reading',
    'UnitConverter',
    'CANONICAL_UNITS',
    'PPB',
    'PPM',
    'UGM3',
    'MGM3',
    'BreakpointEntry',
    'BreakpointTable',
    'epa_breakpoint_table',
    'IndexConverter',
    'AQHI_CATEGORIES',
    'FormulaVariant',
    'HealthIndexCalculator',
    'HealthIndexResult',
    'VariantRegistry',
    'get_category',
    'classify_quality',
    'NearestPointMatcher',
    'PointRegistry',
    'AggregateWindow',
    'WindowAggregator',
    'AirQualityFusionEngine',
    'IngestReport',
]
