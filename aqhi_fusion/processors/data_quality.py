"""
Data-quality tiers for a rolling window.

The tier is a pure function of how many distinct reading timestamps back the
window and how much time they span. Tiers are checked in order, first match
wins:

    excellent  ≥ 15 readings spanning ≥ 3 h
    good       ≥ 10 readings spanning ≥ 2 h
    fair       ≥  5 readings spanning ≥ 1 h
    limited    ≥  1 reading
    estimated     no readings (callers fall back to the latest single reading)
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple

EXCELLENT = "excellent"
GOOD = "good"
FAIR = "fair"
LIMITED = "limited"
ESTIMATED = "estimated"

QUALITY_TIERS: List[Tuple[str, int, timedelta]] = [
    (EXCELLENT, 15, timedelta(hours=3)),
    (GOOD, 10, timedelta(hours=2)),
    (FAIR, 5, timedelta(hours=1)),
    (LIMITED, 1, timedelta(0)),
]


def classify_quality(reading_count: int, time_span: timedelta) -> str:
    for tier, min_readings, min_span in QUALITY_TIERS:
        if reading_count >= min_readings and time_span >= min_span:
            return tier
    return ESTIMATED


def timestamp_coverage(timestamps: Iterable[datetime]) -> Tuple[int, timedelta]:
    """Number of distinct timestamps and the span between the first and last"""
    distinct = sorted(set(timestamps))
    if not distinct:
        return 0, timedelta(0)
    return len(distinct), distinct[-1] - distinct[0]


def classify_timestamps(timestamps: Iterable[datetime]) -> str:
    return classify_quality(*timestamp_coverage(timestamps))
