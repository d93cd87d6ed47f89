"""
WAQI station payloads and gridded supplement planning
"""

from datetime import datetime

import pytest
import pytz

from aqhi_fusion.collectors.supplement_planner import (
    SupplementPlanner, build_grid, missing_pollutants, parse_current_conditions,
)
from aqhi_fusion.collectors.waqi_station_parser import parse_station
from aqhi_fusion.processors.fusion_engine import AirQualityFusionEngine
from aqhi_fusion.processors.models import MonitoringPoint
from aqhi_fusion.processors.pollutants import Pollutant
from aqhi_fusion.utils.errors import ConfigurationError, InvalidReadingError

WAQI_STATION = {
    "uid": 1822,
    "lat": 13.7563,
    "lon": 100.5018,
    "station": {"name": "Bangkok Central"},
    "time": {"s": "2025-10-05 19:00:00", "tz": "+07:00"},
    "iaqi": {
        "pm25": {"v": 65},
        "pm10": {"v": 40},
        "t": {"v": 31.2},
        "h": {"v": 70},
        "dew": {"v": 24},
        "wg": {"v": 3.1},
    },
}

GOOGLE_RESPONSE = {
    "dateTime": "2025-10-05T11:55:00Z",
    "pollutants": [
        {"code": "o3", "concentration": {"value": 60, "units": "PARTS_PER_BILLION"}},
        {"code": "no2", "concentration": {"value": 47.0, "units": "MICROGRAMS_PER_CUBIC_METER"}},
        {"code": "nmhc", "concentration": {"value": 120, "units": "PARTS_PER_BILLION"}},
    ],
}


class TestWaqiStationParser:

    def test_station_and_index_reading(self):
        point, reading = parse_station(WAQI_STATION)

        assert point == MonitoringPoint("1822", 13.7563, 100.5018, "Bangkok Central")
        assert reading.is_index
        assert reading.source == "waqi"
        assert reading.point_id == "1822"
        assert reading.values.as_dict() == {"pm25": 65.0, "pm10": 40.0}
        assert reading.timestamp == datetime(2025, 10, 5, 12, 0, tzinfo=pytz.utc)

    def test_epoch_time(self):
        payload = {**WAQI_STATION, "time": {"v": 1759665600}}
        _, reading = parse_station(payload)
        assert reading.timestamp == datetime(2025, 10, 5, 12, 0, tzinfo=pytz.utc)

    def test_weather_only_station_has_no_reading(self):
        payload = {**WAQI_STATION, "iaqi": {"t": {"v": 30}, "h": {"v": 65}}}
        point, reading = parse_station(payload)
        assert point.point_id == "1822"
        assert reading is None

    def test_feed_payload_with_city_geo(self):
        payload = {
            "idx": 5773,
            "city": {"name": "Chatuchak", "geo": [13.80, 100.55]},
            "time": {"iso": "2025-10-05T19:00:00+07:00"},
            "iaqi": {"o3": {"v": 12}},
        }
        point, reading = parse_station(payload)
        assert point.name == "Chatuchak"
        assert point.coordinates == (13.80, 100.55)
        assert reading.values.o3 == 12.0

    def test_missing_coordinates_raise(self):
        with pytest.raises(InvalidReadingError):
            parse_station({"uid": 1, "iaqi": {"pm25": {"v": 10}}})


class TestGrid:

    def test_default_bangkok_grid(self):
        grid = build_grid()
        assert len(grid) == 9
        assert grid[0] == (13.5, 100.3)
        assert (13.75, 100.6) in grid
        assert grid[-1] == (14.0, 100.9)

    def test_single_cell_grid_is_the_centre(self):
        assert build_grid({"lat_min": 0, "lat_max": 2, "lon_min": 10, "lon_max": 12}, size=1) == [(1.0, 11.0)]

    def test_invalid_grid_raises(self):
        with pytest.raises(ConfigurationError):
            build_grid(size=0)
        with pytest.raises(ConfigurationError):
            build_grid({"lat_min": 14, "lat_max": 13, "lon_min": 100, "lon_max": 101})


class TestSupplementPlanner:

    def test_missing_pollutants(self):
        assert missing_pollutants(["pm25", "o3"], ["o3", "no2"]) == [Pollutant.NO2]
        assert missing_pollutants(["o3", "no2"], ["o3", "no2"]) == []

    def test_points_needing_supplements(self):
        planner = SupplementPlanner()
        coverage = {
            "1822": ["pm25", "o3", "no2"],
            "5773": ["pm25"],
            "8641": ["pm25", "o3"],
        }
        assert planner.points_needing_supplements(coverage) == ["5773", "8641"]

    def test_stations_share_grid_cells(self):
        planner = SupplementPlanner()
        points = [
            MonitoringPoint("1822", 13.7563, 100.5018),
            MonitoringPoint("5773", 13.8000, 100.5500),
            MonitoringPoint("9001", 13.52, 100.32),
        ]
        cells = planner.plan(points)
        assert [c.coordinates for c in cells] == [(13.5, 100.3), (13.75, 100.6)]
        assert cells[1].point_ids == ["1822", "5773"]


class TestCurrentConditions:

    def test_parse_response(self):
        reading = parse_current_conditions(GOOGLE_RESPONSE, (13.75, 100.6))
        assert reading.source == "google"
        assert reading.point_id is None
        assert reading.coordinates == (13.75, 100.6)
        assert reading.values.as_dict() == {"o3": 60.0, "no2": 47.0}
        assert reading.units == {"o3": "PARTS_PER_BILLION", "no2": "MICROGRAMS_PER_CUBIC_METER"}

    def test_empty_response(self):
        assert parse_current_conditions({"pollutants": []}, (13.75, 100.6)) is None

    def test_google_supplements_waqi_station(self):
        engine = AirQualityFusionEngine()
        point, station_reading = parse_station(WAQI_STATION)
        engine.register_point(point)
        engine.ingest(station_reading)
        engine.ingest(parse_current_conditions(GOOGLE_RESPONSE, (13.76, 100.51)))

        now = datetime(2025, 10, 5, 12, 0, tzinfo=pytz.utc)
        window = engine.get_window("1822", now)
        assert window.mean("pm25") == 16.61
        assert window.mean("o3") == 60.0
        assert window.mean("no2") == 25.0
        assert window.supplemented_pollutants == ["no2", "o3"]

        result = engine.compute_point_health_index("1822", now)
        assert result.has_value
        assert result.reading_count == 2
