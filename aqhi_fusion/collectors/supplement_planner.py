#!/usr/bin/env python3
"""
🧩 SUPPLEMENT PLANNER
====================
Decides where supplemental gridded data (Google Air Quality currentConditions)
is needed and turns its responses into engine readings.

STRATEGY:
1. Find stations that do not report every pollutant the AQHI variant needs
2. Snap those stations onto a coarse N×N grid over the city bounds
3. One upstream lookup per grid cell serves every station snapped to it
4. Parsed responses are coordinate-tagged readings; the engine matches them
   back to the nearest station on ingest

Default bounds cover greater Bangkok (13.5-14.0 N, 100.3-100.9 E).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..processors.models import Coordinates, MonitoringPoint, Reading
from ..processors.pollutants import Pollutant, PollutantKey, PollutantValues, is_known_pollutant, normalize_pollutant
from ..utils.errors import ConfigurationError, InvalidReadingError
from ..utils.geo import haversine_km_many
from ..utils.time_utils import TimestampLike, to_utc, utc_now

logger = logging.getLogger(__name__)

GOOGLE_SOURCE = "google"

BANGKOK_BOUNDS = {
    'lat_min': 13.5,
    'lat_max': 14.0,
    'lon_min': 100.3,
    'lon_max': 100.9,
}


@dataclass
class GridCell:
    """One upstream lookup location and the stations it serves"""
    latitude: float
    longitude: float
    point_ids: List[str] = field(default_factory=list)

    @property
    def coordinates(self) -> Coordinates:
        return (self.latitude, self.longitude)


def build_grid(bounds: Optional[Dict[str, float]] = None, size: int = 3) -> List[Tuple[float, float]]:
    """
    Evenly spaced size×size grid over ``bounds`` including the edges,
    coordinates rounded to 3 decimals, row-major from the south-west corner.
    """
    bounds = bounds or BANGKOK_BOUNDS
    if size < 1:
        raise ConfigurationError(f"Grid size must be at least 1, got {size}")
    if bounds['lat_min'] > bounds['lat_max'] or bounds['lon_min'] > bounds['lon_max']:
        raise ConfigurationError(f"Invalid grid bounds: {bounds}")

    if size == 1:
        lats = [(bounds['lat_min'] + bounds['lat_max']) / 2]
        lons = [(bounds['lon_min'] + bounds['lon_max']) / 2]
    else:
        lats = np.linspace(bounds['lat_min'], bounds['lat_max'], size)
        lons = np.linspace(bounds['lon_min'], bounds['lon_max'], size)

    return [(round(float(lat), 3), round(float(lon), 3)) for lat in lats for lon in lons]


def missing_pollutants(present: Iterable[PollutantKey], required: Iterable[PollutantKey]) -> List[Pollutant]:
    present_set = {normalize_pollutant(p) for p in present}
    return [p for p in (normalize_pollutant(r) for r in required) if p not in present_set]


class SupplementPlanner:
    """
    Plans supplemental lookups for stations with incomplete pollutant coverage
    """

    def __init__(self, required_pollutants: Sequence[PollutantKey] = (Pollutant.O3, Pollutant.NO2),
                 bounds: Optional[Dict[str, float]] = None, grid_size: int = 3):
        self.required_pollutants = [normalize_pollutant(p) for p in required_pollutants]
        self.grid = build_grid(bounds, grid_size)

    def points_needing_supplements(self, coverage: Dict[str, Iterable[PollutantKey]]) -> List[str]:
        """Point ids whose reported pollutants miss at least one required pollutant"""
        needing = [
            point_id for point_id, present in coverage.items()
            if missing_pollutants(present, self.required_pollutants)
        ]
        logger.info(
            f"📊 {len(needing)}/{len(coverage)} stations need supplements for "
            f"{[p.value for p in self.required_pollutants]}"
        )
        return sorted(needing)

    def nearest_grid_point(self, coord: Coordinates) -> Tuple[float, float]:
        lat, lon = coord
        distances = haversine_km_many(
            lat, lon,
            np.array([g[0] for g in self.grid]),
            np.array([g[1] for g in self.grid]),
        )
        return self.grid[int(np.argmin(distances))]

    def plan(self, points: Sequence[MonitoringPoint]) -> List[GridCell]:
        """Group ``points`` by their nearest grid cell; one cell per upstream call"""
        cells: Dict[Tuple[float, float], GridCell] = {}
        for point in points:
            grid_point = self.nearest_grid_point(point.coordinates)
            cell = cells.get(grid_point)
            if cell is None:
                cell = cells[grid_point] = GridCell(grid_point[0], grid_point[1])
            cell.point_ids.append(point.point_id)

        logger.info(f"🎯 {len(cells)} unique grid points needed for {len(points)} stations")
        return [cells[key] for key in sorted(cells)]


def parse_current_conditions(payload: Dict[str, Any], coordinates: Coordinates,
                             timestamp: Optional[TimestampLike] = None,
                             source: str = GOOGLE_SOURCE) -> Optional[Reading]:
    """
    Convert a currentConditions response into a coordinate-tagged reading.

        {"dateTime": "2025-10-05T08:00:00Z",
         "pollutants": [{"code": "o3",
                         "concentration": {"value": 24.5, "units": "PARTS_PER_BILLION"}}]}

    Concentrations keep the units Google reports. Returns None when the
    response carries no usable pollutant.
    """
    values: Dict[str, float] = {}
    units: Dict[str, str] = {}

    for entry in payload.get('pollutants') or []:
        code = entry.get('code', '')
        concentration = entry.get('concentration') or {}
        value = concentration.get('value')
        if not is_known_pollutant(code) or value is None:
            continue
        pollutant = normalize_pollutant(code)
        values[pollutant.value] = float(value)
        if concentration.get('units'):
            units[pollutant.value] = concentration['units']

    if not values:
        logger.debug(f"🌐 No usable pollutants in Google response at {coordinates}")
        return None

    if timestamp is None:
        timestamp = payload.get('dateTime') or utc_now()

    try:
        return Reading(
            timestamp=to_utc(timestamp),
            source=source,
            values=PollutantValues.from_mapping(values),
            coordinates=(float(coordinates[0]), float(coordinates[1])),
            units=units,
        )
    except ValueError as e:
        raise InvalidReadingError(f"Unparseable Google response at {coordinates}: {e}") from e
