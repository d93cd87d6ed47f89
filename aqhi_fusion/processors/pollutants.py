"""
Known pollutant codes and the sparse per-pollutant value container.

Feeds name pollutants differently:
- WAQI: pm25, pm10, o3, no2, so2, co
- Google Air Quality: pm25, pm10, o3, no2, so2, co (lower case codes)
- OpenWeather: pm2_5, pm10, o3, no2, so2, co
- Station exports: PM2.5, O3, NO2, ...

Everything is normalized to the ``Pollutant`` enum. Values are kept in a
``PollutantValues`` record with one optional field per code, so an absent
pollutant (``None``) can never be confused with a zero concentration.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from ..utils.errors import ConfigurationError


class Pollutant(Enum):
    """Pollutant codes understood by the engine"""
    PM25 = "pm25"
    PM10 = "pm10"
    O3 = "o3"
    NO2 = "no2"
    SO2 = "so2"
    CO = "co"

    @property
    def is_particulate(self) -> bool:
        return self in (Pollutant.PM25, Pollutant.PM10)


_ALIASES = {
    'pm25': Pollutant.PM25,
    'pm2.5': Pollutant.PM25,
    'pm2_5': Pollutant.PM25,
    'fine_particulate_matter': Pollutant.PM25,
    'pm10': Pollutant.PM10,
    'pm_10': Pollutant.PM10,
    'o3': Pollutant.O3,
    'ozone': Pollutant.O3,
    'no2': Pollutant.NO2,
    'nitrogen_dioxide': Pollutant.NO2,
    'so2': Pollutant.SO2,
    'sulfur_dioxide': Pollutant.SO2,
    'sulphur_dioxide': Pollutant.SO2,
    'co': Pollutant.CO,
    'carbon_monoxide': Pollutant.CO,
}

PollutantKey = Union[Pollutant, str]


def normalize_pollutant(pollutant: PollutantKey) -> Pollutant:
    """
    Map a feed-specific pollutant name onto ``Pollutant``.

    Raises ConfigurationError for codes the engine does not know about.
    """
    if isinstance(pollutant, Pollutant):
        return pollutant

    key = str(pollutant).strip().lower().replace(' ', '_')
    if key in _ALIASES:
        return _ALIASES[key]

    raise ConfigurationError(f"Unknown pollutant code: {pollutant!r}")


def is_known_pollutant(pollutant: PollutantKey) -> bool:
    try:
        normalize_pollutant(pollutant)
    except ConfigurationError:
        return False
    return True


@dataclass(frozen=True)
class PollutantValues:
    """One optional value per known pollutant; ``None`` means absent"""
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    o3: Optional[float] = None
    no2: Optional[float] = None
    so2: Optional[float] = None
    co: Optional[float] = None

    @classmethod
    def from_mapping(cls, values: Mapping[PollutantKey, Optional[float]]) -> 'PollutantValues':
        """Build from a ``{pollutant: value}`` mapping, normalizing pollutant names"""
        kwargs: Dict[str, Optional[float]] = {}
        for key, value in values.items():
            pollutant = normalize_pollutant(key)
            kwargs[pollutant.value] = None if value is None else float(value)
        return cls(**kwargs)

    def get(self, pollutant: PollutantKey) -> Optional[float]:
        return getattr(self, normalize_pollutant(pollutant).value)

    def with_value(self, pollutant: PollutantKey, value: Optional[float]) -> 'PollutantValues':
        return replace(self, **{normalize_pollutant(pollutant).value: value})

    def present(self) -> Iterator[Tuple[Pollutant, float]]:
        """Iterate over the pollutants that carry a value"""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                yield Pollutant(f.name), value

    def as_dict(self) -> Dict[str, float]:
        return {pollutant.value: value for pollutant, value in self.present()}

    def is_empty(self) -> bool:
        return next(self.present(), None) is None
