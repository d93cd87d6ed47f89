"""
Timestamp normalization.

Feeds report times as ISO strings (``2025-10-05T08:00:00Z``), epoch seconds
or datetimes, sometimes without a timezone. Everything inside the engine is
timezone-aware UTC.
"""

from datetime import datetime
from typing import Union

import pytz

TimestampLike = Union[datetime, str, int, float]


def to_utc(value: TimestampLike) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)"""
    if isinstance(value, datetime):
        timestamp = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=pytz.utc)
    elif isinstance(value, str):
        timestamp = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")

    if timestamp.tzinfo is None:
        return pytz.utc.localize(timestamp)
    return timestamp.astimezone(pytz.utc)


def utc_now() -> datetime:
    return datetime.now(pytz.utc)
