"""
Collectors Package
Feed payload normalizers: WAQI stations and gridded supplemental lookups
"""

from .waqi_station_parser import WAQI_SOURCE, parse_station
from .supplement_planner import (
    GOOGLE_SOURCE, GridCell, SupplementPlanner, build_grid, parse_current_conditions,
)

__all__ = [
    'WAQI_SOURCE',
    'parse_station',
    'GOOGLE_SOURCE',
    'GridCell',
    'SupplementPlanner',
    'build_grid',
    'parse_current_conditions',
]
