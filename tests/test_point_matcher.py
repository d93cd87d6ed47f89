"""
Nearest station matching and the point registry
"""

import pytest

from aqhi_fusion.processors.models import MonitoringPoint
from aqhi_fusion.processors.point_matcher import NearestPointMatcher, PointRegistry
from aqhi_fusion.utils.geo import haversine_km

STATIONS = [
    MonitoringPoint("1822", 13.7563, 100.5018, "Bangkok Central"),
    MonitoringPoint("5773", 13.8000, 100.5500, "Chatuchak"),
    MonitoringPoint("8641", 13.6500, 100.4500, "Thon Buri"),
]


class TestHaversine:

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)

    def test_zero_distance(self):
        assert haversine_km(13.7563, 100.5018, 13.7563, 100.5018) == 0.0


class TestNearestPointMatcher:

    def test_picks_closest_station(self):
        matcher = NearestPointMatcher()
        assert matcher.match_to_nearest_point((13.79, 100.54), STATIONS) == "5773"
        assert matcher.match_to_nearest_point((13.75, 100.50), STATIONS) == "1822"

    def test_nothing_within_radius(self):
        matcher = NearestPointMatcher(max_distance_km=10)
        station = STATIONS[0]
        # ~11 km due north
        coord = (station.latitude + 0.099, station.longitude)
        assert haversine_km(*coord, *station.coordinates) > 10
        assert matcher.match_to_nearest_point(coord, [station]) is None
        assert matcher.match_to_nearest_point(coord, [station], max_distance_km=12) == "1822"

    def test_ties_resolve_to_smallest_id(self):
        matcher = NearestPointMatcher()
        north = MonitoringPoint("st-b", 13.76, 100.5)
        south = MonitoringPoint("st-a", 13.74, 100.5)
        assert matcher.match_to_nearest_point((13.75, 100.5), [north, south]) == "st-a"
        assert matcher.match_to_nearest_point((13.75, 100.5), [south, north]) == "st-a"

    def test_inactive_stations_are_skipped(self):
        matcher = NearestPointMatcher()
        points = [STATIONS[0].with_active(False), STATIONS[1]]
        assert matcher.match_to_nearest_point((13.7563, 100.5018), points) == "5773"

    def test_no_candidates(self):
        assert NearestPointMatcher().match_to_nearest_point((13.75, 100.5), []) is None

    def test_nearest_point_reports_distance(self):
        point_id, distance = NearestPointMatcher().nearest_point((13.7563, 100.5018), STATIONS)
        assert point_id == "1822"
        assert distance == pytest.approx(0.0, abs=1e-6)


class TestPointRegistry:

    def test_first_observation_wins(self):
        registry = PointRegistry()
        registry.observe(STATIONS[0])
        moved = MonitoringPoint("1822", 0.0, 0.0, "Moved")
        assert registry.observe(moved) == STATIONS[0]
        assert len(registry) == 1

    def test_deactivate_and_reactivate(self):
        registry = PointRegistry(STATIONS)
        registry.deactivate("5773")
        assert [p.point_id for p in registry.active_points()] == ["1822", "8641"]
        assert "5773" in registry
        assert not registry.get("5773").active

        registry.activate("5773")
        assert len(registry.active_points()) == 3

    def test_unknown_point_raises(self):
        with pytest.raises(KeyError):
            PointRegistry().deactivate("missing")
