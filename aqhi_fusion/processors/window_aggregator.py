"""
🕐 ROLLING WINDOW AGGREGATOR
==========================
Keeps every concentration reading per monitoring point and derives a 3-hour
rolling window on demand.

SOURCE PRIORITY (per pollutant, never blended):
- The primary feed (station network) supplies the mean whenever it has at
  least one value for that pollutant inside the window
- Only when it has none, the next source in priority order (configured
  secondary feeds, then any other source alphabetically) supplies the mean,
  and the pollutant is tagged as supplemented

STORAGE:
- Log per point keyed by (timestamp, source); re-sending the same
  observation replaces it (last write wins)
- Appends take a per-point lock; queries read an immutable snapshot and
  never lock
- Queries never delete; an external retention job calls ``purge_before``
  to drop readings it no longer needs

Readings must already be concentrations in the canonical units
(μg/m³ for particulates, ppb for O₃/NO₂/SO₂, ppm for CO).
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .data_quality import ESTIMATED, classify_quality, timestamp_coverage
from .models import Reading
from .pollutants import Pollutant, PollutantKey, PollutantValues, normalize_pollutant
from .unit_converter import CANONICAL_UNITS, normalize_unit
from ..utils.errors import InvalidReadingError
from ..utils.rounding import round_half_up
from ..utils.time_utils import TimestampLike, to_utc

logger = logging.getLogger(__name__)

ReadingKey = Tuple[datetime, str]


@dataclass(frozen=True)
class PollutantAggregate:
    """Window mean of one pollutant and where it came from"""
    pollutant: Pollutant
    mean: float
    unit: str
    source: str
    reading_count: int
    source_breakdown: Dict[str, int]
    supplemented: bool = False


@dataclass
class AggregateWindow:
    """Derived view of one point's readings inside the rolling window"""
    point_id: str
    window_start: datetime
    window_end: datetime
    pollutants: Dict[Pollutant, PollutantAggregate] = field(default_factory=dict)
    total_reading_count: int = 0
    time_span: timedelta = timedelta(0)
    quality_tier: str = ESTIMATED
    source_counts: Dict[str, int] = field(default_factory=dict)

    def mean(self, pollutant: PollutantKey) -> Optional[float]:
        aggregate = self.pollutants.get(normalize_pollutant(pollutant))
        return aggregate.mean if aggregate else None

    def means(self) -> PollutantValues:
        return PollutantValues.from_mapping({p: a.mean for p, a in self.pollutants.items()})

    def units(self) -> Dict[str, str]:
        return {p.value: a.unit for p, a in self.pollutants.items()}

    @property
    def is_empty(self) -> bool:
        return self.total_reading_count == 0

    @property
    def supplemented_pollutants(self) -> List[str]:
        return sorted(p.value for p, a in self.pollutants.items() if a.supplemented)

    @property
    def data_sources(self) -> str:
        """Sources that contributed at least one mean, e.g. 'waqi+google'"""
        used = sorted({a.source for a in self.pollutants.values()})
        return "+".join(used) if used else "none"

    def to_dict(self) -> Dict:
        return {
            "point_id": self.point_id,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "pollutants": {
                p.value: {
                    "mean": a.mean,
                    "unit": a.unit,
                    "source": a.source,
                    "reading_count": a.reading_count,
                    "source_breakdown": dict(a.source_breakdown),
                    "supplemented": a.supplemented,
                }
                for p, a in self.pollutants.items()
            },
            "total_reading_count": self.total_reading_count,
            "time_span_minutes": round(self.time_span.total_seconds() / 60, 1),
            "quality_tier": self.quality_tier,
            "source_counts": dict(self.source_counts),
            "data_sources": self.data_sources,
        }


class _PointLog:
    """Copy-on-write reading log for a single point"""

    def __init__(self):
        self.lock = threading.Lock()
        self.snapshot: Mapping[ReadingKey, Reading] = MappingProxyType({})

    def put(self, reading: Reading) -> bool:
        with self.lock:
            updated = dict(self.snapshot)
            is_new = reading.key not in updated
            updated[reading.key] = reading
            self.snapshot = MappingProxyType(updated)
        return is_new

    def purge_before(self, cutoff: datetime) -> int:
        with self.lock:
            kept = {key: r for key, r in self.snapshot.items() if r.timestamp >= cutoff}
            removed = len(self.snapshot) - len(kept)
            if removed:
                self.snapshot = MappingProxyType(kept)
        return removed


class WindowAggregator:
    """
    Per-point reading log with source-prioritized rolling-window means
    """

    def __init__(self, primary_source: str = "waqi", secondary_sources: Sequence[str] = (),
                 window_hours: float = 3.0):
        self.primary_source = primary_source
        self.secondary_sources = [s for s in secondary_sources if s != primary_source]
        self.window = timedelta(hours=window_hours)
        self._logs: Dict[str, _PointLog] = {}
        self._logs_lock = threading.Lock()

    # ------------------------------------------------------------------ writes

    def _log_for(self, point_id: str) -> _PointLog:
        log = self._logs.get(point_id)
        if log is None:
            with self._logs_lock:
                log = self._logs.setdefault(point_id, _PointLog())
        return log

    def _validate(self, reading: Reading) -> None:
        if reading.point_id is None:
            raise InvalidReadingError(
                f"Reading from '{reading.source}' has no point_id; match its coordinates first"
            )
        if reading.is_index:
            raise InvalidReadingError(
                f"Reading from '{reading.source}' holds AQI indices; convert to concentrations first"
            )
        if reading.values.is_empty():
            raise InvalidReadingError(f"Reading from '{reading.source}' has no pollutant values")
        for pollutant, _ in reading.values.present():
            unit = reading.unit_for(pollutant)
            if unit is not None and normalize_unit(unit) != CANONICAL_UNITS[pollutant]:
                raise InvalidReadingError(
                    f"{pollutant.value} from '{reading.source}' is in {unit}, "
                    f"expected {CANONICAL_UNITS[pollutant]}"
                )

    def append(self, reading: Reading) -> bool:
        """
        Store ``reading``. Returns False when it replaced an earlier reading
        with the same (point, timestamp, source).
        """
        self._validate(reading)
        is_new = self._log_for(reading.point_id).put(reading)
        if not is_new:
            logger.debug(
                f"🔁 Replaced {reading.source} reading for {reading.point_id} at {reading.timestamp.isoformat()}"
            )
        return is_new

    def purge_before(self, cutoff: TimestampLike, point_id: Optional[str] = None) -> int:
        """
        Drop readings older than ``cutoff`` for one point, or for every point
        when ``point_id`` is None. Returns the number of readings removed.
        """
        cutoff = to_utc(cutoff)
        if point_id is not None:
            log = self._logs.get(str(point_id))
            logs = [log] if log is not None else []
        else:
            with self._logs_lock:
                logs = list(self._logs.values())

        removed = sum(log.purge_before(cutoff) for log in logs)
        if removed:
            logger.info(f"🧹 Purged {removed} readings older than {cutoff.isoformat()}")
        return removed

    # ----------------------------------------------------------------- queries

    def point_ids(self) -> List[str]:
        return sorted(self._logs)

    def readings(self, point_id: str) -> List[Reading]:
        """All stored readings of a point, oldest first"""
        log = self._logs.get(str(point_id))
        if log is None:
            return []
        return sorted(log.snapshot.values(), key=lambda r: (r.timestamp, r.source))

    def latest_reading(self, point_id: str, now: Optional[TimestampLike] = None,
                       pollutants: Optional[Iterable[PollutantKey]] = None) -> Optional[Reading]:
        """
        Most recent reading at or before ``now``, preferring the primary source
        on ties. With ``pollutants``, only readings carrying at least one of
        them are considered.
        """
        readings = self.readings(point_id)
        if now is not None:
            cutoff = to_utc(now)
            readings = [r for r in readings if r.timestamp <= cutoff]
        if pollutants is not None:
            wanted = {normalize_pollutant(p) for p in pollutants}
            readings = [r for r in readings if any(p in wanted for p, _ in r.values.present())]
        if not readings:
            return None
        return max(readings, key=lambda r: (r.timestamp, r.source == self.primary_source))

    def source_rank(self, source: str) -> Tuple[int, str]:
        if source == self.primary_source:
            return (0, source)
        if source in self.secondary_sources:
            return (1 + self.secondary_sources.index(source), source)
        return (1 + len(self.secondary_sources), source)

    def get_window(self, point_id: str, now: TimestampLike) -> AggregateWindow:
        """Aggregate of the readings with ``now - window <= timestamp <= now``"""
        point_id = str(point_id)
        window_end = to_utc(now)
        window_start = window_end - self.window

        in_window = [
            r for r in self.readings(point_id)
            if window_start <= r.timestamp <= window_end
        ]

        reading_count, time_span = timestamp_coverage(r.timestamp for r in in_window)
        window = AggregateWindow(
            point_id=point_id,
            window_start=window_start,
            window_end=window_end,
            total_reading_count=reading_count,
            time_span=time_span,
            quality_tier=classify_quality(reading_count, time_span),
        )

        for reading in in_window:
            window.source_counts[reading.source] = window.source_counts.get(reading.source, 0) + 1

        window.pollutants = self._merge_pollutants(in_window)

        logger.debug(
            f"🕐 Window {point_id} {window_start.isoformat()} → {window_end.isoformat()}: "
            f"{reading_count} readings, {window.quality_tier}, sources {window.data_sources}"
        )
        return window

    def _merge_pollutants(self, readings: List[Reading]) -> Dict[Pollutant, PollutantAggregate]:
        rows = [
            {"pollutant": pollutant.value, "source": reading.source, "value": value}
            for reading in readings
            for pollutant, value in reading.values.present()
            if not math.isnan(value)
        ]
        if not rows:
            return {}

        frame = pd.DataFrame(rows)
        stats = frame.groupby(["pollutant", "source"])["value"].agg(["mean", "count"])

        merged: Dict[Pollutant, PollutantAggregate] = {}
        for pollutant_code, group in stats.groupby(level="pollutant"):
            per_source = {
                source: (float(row["mean"]), int(row["count"]))
                for (_, source), row in group.iterrows()
            }
            chosen = min(per_source, key=self.source_rank)
            mean, count = per_source[chosen]
            pollutant = Pollutant(pollutant_code)

            merged[pollutant] = PollutantAggregate(
                pollutant=pollutant,
                mean=round_half_up(mean, 2),
                unit=CANONICAL_UNITS[pollutant],
                source=chosen,
                reading_count=count,
                source_breakdown={source: c for source, (_, c) in sorted(per_source.items())},
                supplemented=chosen != self.primary_source,
            )

            if chosen != self.primary_source:
                logger.debug(f"🧩 {pollutant.value} supplemented from {chosen} ({count} readings)")

        return merged
