"""
📍 NEAREST MONITORING POINT MATCHING
===================================
Supplemental feeds (Google Air Quality grid cells, OpenWeather coordinates)
are not co-located with the primary stations. Each supplemental reading is
assigned to the nearest active station by great-circle distance, and only
when that station is within the match radius; otherwise the reading is
dropped for fusion purposes, never force-assigned.

Equidistant stations resolve to the lexicographically smallest point id so
matching is reproducible.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import Coordinates, MonitoringPoint
from ..utils.geo import haversine_km_many

logger = logging.getLogger(__name__)

DISTANCE_TOLERANCE_KM = 1e-9


class NearestPointMatcher:
    """Haversine nearest-neighbour search over monitoring points"""

    def __init__(self, max_distance_km: float = 10.0):
        self.max_distance_km = max_distance_km

    def nearest_point(self, coord: Coordinates,
                      candidate_points: Sequence[MonitoringPoint]) -> Optional[Tuple[str, float]]:
        """(point_id, distance_km) of the closest active candidate, ignoring the radius"""
        candidates = [p for p in candidate_points if p.active]
        if not candidates:
            return None

        lat, lon = coord
        distances = haversine_km_many(
            lat, lon,
            np.array([p.latitude for p in candidates]),
            np.array([p.longitude for p in candidates]),
        )

        min_distance = float(distances.min())
        tied = [
            candidates[i].point_id
            for i in np.flatnonzero(distances <= min_distance + DISTANCE_TOLERANCE_KM)
        ]
        return min(tied), min_distance

    def match_to_nearest_point(self, coord: Coordinates, candidate_points: Sequence[MonitoringPoint],
                               max_distance_km: Optional[float] = None) -> Optional[str]:
        """
        Point id of the nearest active candidate within ``max_distance_km``,
        or None when no candidate is close enough.
        """
        limit = self.max_distance_km if max_distance_km is None else max_distance_km

        nearest = self.nearest_point(coord, candidate_points)
        if nearest is None:
            return None

        point_id, distance = nearest
        if distance > limit:
            logger.debug(
                f"📍 No station within {limit} km of {coord} (nearest {point_id} at {distance:.2f} km)"
            )
            return None

        return point_id


class PointRegistry:
    """
    Monitoring points known to the engine.

    A point is created the first time a primary feed reports it. Afterwards
    only its active flag changes; points are never removed.
    """

    def __init__(self, points: Iterable[MonitoringPoint] = ()):
        self._points: Dict[str, MonitoringPoint] = {}
        self._lock = threading.Lock()
        for point in points:
            self.observe(point)

    def observe(self, point: MonitoringPoint) -> MonitoringPoint:
        """Register ``point`` if new; an already known point is returned unchanged"""
        with self._lock:
            existing = self._points.get(point.point_id)
            if existing is not None:
                return existing
            self._points[point.point_id] = point

        logger.info(f"📍 Registered monitoring point {point.point_id} ({point.name or 'unnamed'})")
        return point

    def get(self, point_id: str) -> Optional[MonitoringPoint]:
        return self._points.get(str(point_id))

    def set_active(self, point_id: str, active: bool) -> MonitoringPoint:
        with self._lock:
            point = self._points.get(str(point_id))
            if point is None:
                raise KeyError(f"Unknown monitoring point {point_id}")
            updated = point.with_active(active)
            self._points[point.point_id] = updated
        return updated

    def deactivate(self, point_id: str) -> MonitoringPoint:
        return self.set_active(point_id, False)

    def activate(self, point_id: str) -> MonitoringPoint:
        return self.set_active(point_id, True)

    def all_points(self) -> List[MonitoringPoint]:
        with self._lock:
            points = list(self._points.values())
        return sorted(points, key=lambda p: p.point_id)

    def active_points(self) -> List[MonitoringPoint]:
        return [p for p in self.all_points() if p.active]

    def __contains__(self, point_id: str) -> bool:
        return str(point_id) in self._points

    def __len__(self) -> int:
        return len(self._points)
