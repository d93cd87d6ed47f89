"""
AQHI Fusion
Multi-source air quality fusion and Air Quality Health Index engine
"""

from .processors import (
    AirQualityFusionEngine,
    HealthIndexCalculator,
    IndexConverter,
    MonitoringPoint,
    NearestPointMatcher,
    Pollutant,
    PollutantValues,
    Reading,
    UnitConverter,
    WindowAggregator,
)
from .utils import ConfigurationError, InvalidReadingError, Settings, load_settings

__version__ = '1.0.0'

__all__ = [
    'AirQualityFusionEngine',
    'HealthIndexCalculator',
    'IndexConverter',
    'MonitoringPoint',
    'NearestPointMatcher',
    'Pollutant',
    'PollutantValues',
    'Reading',
    'UnitConverter',
    'WindowAggregator',
    'ConfigurationError',
    'InvalidReadingError',
    'Settings',
    'load_settings',
]
