#!/usr/bin/env python3
"""
📡 WAQI STATION PARSER
=====================
Turns WAQI station payloads (map bounds / feed endpoints) into engine records.

WAQI reports per-pollutant US EPA sub-indices under ``iaqi``, not
concentrations:

    {"uid": 1822, "lat": 13.73, "lon": 100.52,
     "station": {"name": "Bangkok Central"},
     "time": {"s": "2025-10-05 08:00:00", "tz": "+07:00", "v": 1759626000},
     "iaqi": {"pm25": {"v": 65}, "o3": {"v": 12}, "t": {"v": 31.2}, "h": {"v": 70}}}

Weather entries (temperature, humidity, pressure, wind, rain, dew point) are
skipped. Pollutants the station does not report stay absent, not zero.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from ..processors.models import MonitoringPoint, Reading
from ..processors.pollutants import PollutantValues, is_known_pollutant
from ..utils.errors import InvalidReadingError
from ..utils.time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

WAQI_SOURCE = "waqi"

WEATHER_PARAMETERS = {'h', 't', 'p', 'w', 'wd', 'wg', 'r', 'dew'}


def _station_timestamp(payload: Dict[str, Any]):
    time_info = payload.get('time') or {}
    if isinstance(time_info, dict):
        if time_info.get('v') is not None:
            return to_utc(time_info['v'])
        if time_info.get('iso'):
            return to_utc(time_info['iso'])
        if time_info.get('s'):
            # local station time, offset given separately
            return to_utc(f"{time_info['s']}{time_info.get('tz', '')}")
    elif isinstance(time_info, (str, int, float)):
        return to_utc(time_info)
    return utc_now()


def _station_coordinates(payload: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    if payload.get('lat') is not None and payload.get('lon') is not None:
        return float(payload['lat']), float(payload['lon'])

    geo = (payload.get('station') or {}).get('geo') or (payload.get('city') or {}).get('geo')
    if geo and len(geo) == 2:
        return float(geo[0]), float(geo[1])
    return None


def parse_station(payload: Dict[str, Any], source: str = WAQI_SOURCE) -> Tuple[MonitoringPoint, Optional[Reading]]:
    """
    Split a WAQI station payload into its MonitoringPoint and an index Reading.

    The reading is None when the station reports no pollutant sub-index.
    Raises InvalidReadingError for payloads without uid or coordinates.
    """
    uid = payload.get('uid', payload.get('idx'))
    coordinates = _station_coordinates(payload)
    if uid is None or coordinates is None:
        raise InvalidReadingError(f"WAQI station payload lacks uid or coordinates: {payload!r}")

    station_info = payload.get('station') or payload.get('city') or {}
    point = MonitoringPoint(
        point_id=str(uid),
        latitude=coordinates[0],
        longitude=coordinates[1],
        name=station_info.get('name', ''),
    )

    indices: Dict[str, float] = {}
    skipped = []
    for code, entry in (payload.get('iaqi') or {}).items():
        value = entry.get('v') if isinstance(entry, dict) else entry
        if code in WEATHER_PARAMETERS:
            continue
        if not is_known_pollutant(code) or not isinstance(value, (int, float)) or isinstance(value, bool):
            skipped.append(code)
            continue
        indices[code] = float(value)

    if skipped:
        logger.debug(f"📡 Station {uid}: ignored iaqi entries {skipped}")

    if not indices:
        logger.debug(f"📡 Station {uid} reports no pollutant indices")
        return point, None

    reading = Reading(
        timestamp=_station_timestamp(payload),
        source=source,
        values=PollutantValues.from_mapping(indices),
        point_id=point.point_id,
        coordinates=coordinates,
        is_index=True,
    )
    return point, reading
