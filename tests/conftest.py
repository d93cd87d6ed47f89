"""
Shared fixtures for the AQHI fusion test suite
"""

from datetime import datetime, timedelta

import pytest
import pytz

from aqhi_fusion.processors.models import MonitoringPoint, Reading
from aqhi_fusion.processors.pollutants import PollutantValues

SETTINGS_VARIABLES = [
    'AQHI_WINDOW_HOURS',
    'AQHI_MATCH_MAX_DISTANCE_KM',
    'AQHI_DEFAULT_VARIANT',
    'AQHI_PRIMARY_SOURCE',
    'AQHI_SECONDARY_SOURCES',
    'AQHI_BREAKPOINT_FILE',
    'AQHI_VARIANT_FILE',
    'AQHI_UNIT_FACTOR_FILE',
    'AQHI_LOG_LEVEL',
]


@pytest.fixture
def now():
    return datetime(2025, 10, 5, 12, 0, tzinfo=pytz.utc)


@pytest.fixture
def bangkok_station():
    return MonitoringPoint("1822", 13.7563, 100.5018, name="Bangkok Central")


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every engine variable and restore the environment afterwards"""
    for name in SETTINGS_VARIABLES:
        # set first so the teardown also removes values written by load_dotenv
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def make_reading(timestamp, source="waqi", point_id="1822", coordinates=None,
                 is_index=False, units=None, **values):
    return Reading(
        timestamp=timestamp,
        source=source,
        values=PollutantValues.from_mapping(values),
        point_id=point_id,
        coordinates=coordinates,
        is_index=is_index,
        units=units or {},
    )


def minutes_before(now, *offsets):
    return [now - timedelta(minutes=m) for m in offsets]
