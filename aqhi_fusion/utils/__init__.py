"""
Shared utilities: errors, settings, time and geometry helpers
"""

from .errors import AqhiFusionError, ConfigurationError, InvalidReadingError
from .settings import Settings, load_settings, configure_logging
from .geo import haversine_km
from .time_utils import to_utc

__all__ = [
    'AqhiFusionError',
    'ConfigurationError',
    'InvalidReadingError',
    'Settings',
    'load_settings',
    'configure_logging',
    'haversine_km',
    'to_utc',
]
