"""
Core records exchanged between the engine components
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

from .pollutants import Pollutant, PollutantKey, PollutantValues, normalize_pollutant
from ..utils.errors import InvalidReadingError
from ..utils.time_utils import TimestampLike, to_utc

Coordinates = Tuple[float, float]


@dataclass(frozen=True)
class MonitoringPoint:
    """A primary-feed monitoring station"""
    point_id: str
    latitude: float
    longitude: float
    name: str = ""
    active: bool = True

    @property
    def coordinates(self) -> Coordinates:
        return (self.latitude, self.longitude)

    def with_active(self, active: bool) -> 'MonitoringPoint':
        return replace(self, active=active)


@dataclass(frozen=True)
class Measurement:
    """A single pollutant value as delivered by a feed"""
    value: float
    is_index: bool = False
    unit: Optional[str] = None


@dataclass(frozen=True)
class Reading:
    """
    One observation from one feed at one instant.

    ``point_id`` is set for co-located feeds; supplemental gridded feeds give
    ``coordinates`` instead and are resolved to a point before storage.
    ``is_index`` tells whether ``values`` are 0-500 AQI sub-indices or
    concentrations; one reading never mixes the two. ``units`` maps pollutant
    codes to the unit of each concentration (absent means canonical unit).
    """
    timestamp: datetime
    source: str
    values: PollutantValues
    point_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    is_index: bool = False
    units: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.point_id is None and self.coordinates is None:
            raise InvalidReadingError("Reading needs either a point_id or coordinates")
        if not self.source:
            raise InvalidReadingError("Reading needs a source tag")
        if self.point_id is not None:
            object.__setattr__(self, 'point_id', str(self.point_id))
        object.__setattr__(self, 'timestamp', to_utc(self.timestamp))
        object.__setattr__(
            self, 'units', {normalize_pollutant(k).value: v for k, v in self.units.items()}
        )

    @classmethod
    def from_measurements(
        cls,
        timestamp: TimestampLike,
        source: str,
        measurements: Mapping[PollutantKey, Measurement],
        point_id: Optional[str] = None,
        coordinates: Optional[Coordinates] = None,
    ) -> 'Reading':
        """
        Build a reading from per-pollutant measurements.

        Raises InvalidReadingError when the measurements mix raw indices and
        concentrations.
        """
        flags = {m.is_index for m in measurements.values()}
        if len(flags) > 1:
            raise InvalidReadingError(
                f"Reading from '{source}' mixes index values and concentrations"
            )

        values = PollutantValues.from_mapping({k: m.value for k, m in measurements.items()})
        units = {normalize_pollutant(k).value: m.unit for k, m in measurements.items() if m.unit}

        return cls(
            timestamp=to_utc(timestamp),
            source=source,
            values=values,
            point_id=point_id,
            coordinates=coordinates,
            is_index=flags == {True},
            units=units,
        )

    def unit_for(self, pollutant: Pollutant) -> Optional[str]:
        return self.units.get(pollutant.value)

    @property
    def key(self) -> Tuple[datetime, str]:
        """Identity of an observation inside one point's log"""
        return (self.timestamp, self.source)
