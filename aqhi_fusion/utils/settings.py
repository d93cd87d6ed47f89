#!/usr/bin/env python3
"""
⚙️ ENGINE SETTINGS
==================
Environment-driven configuration for the AQHI fusion engine.

Values are read from the process environment, optionally seeded from a
``.env`` file found by searching upward from the working directory (the
project root when run from a checkout):

- AQHI_WINDOW_HOURS            rolling window length (default 3)
- AQHI_MATCH_MAX_DISTANCE_KM   supplemental-to-station match radius (default 10)
- AQHI_DEFAULT_VARIANT         AQHI formula variant (default thai_opd)
- AQHI_PRIMARY_SOURCE          authoritative feed tag (default waqi)
- AQHI_SECONDARY_SOURCES       comma separated supplemental feeds, in priority order
- AQHI_BREAKPOINT_FILE         optional JSON breakpoint table override
- AQHI_VARIANT_FILE            optional JSON file with extra formula variants
- AQHI_UNIT_FACTOR_FILE        optional JSON object of μg/m³-per-ppb factors
- AQHI_LOG_LEVEL               logging level name (default INFO)
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Resolved engine configuration"""
    window_hours: float = 3.0
    match_max_distance_km: float = 10.0
    default_variant: str = "thai_opd"
    primary_source: str = "waqi"
    secondary_sources: Tuple[str, ...] = ("google", "openweather")
    breakpoint_file: Optional[str] = None
    variant_file: Optional[str] = None
    unit_factor_file: Optional[str] = None
    log_level: str = "INFO"


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _read_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return tuple(default)
    return tuple(item.strip() for item in raw.split(',') if item.strip())


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from the environment.

    Without ``env_file`` the nearest ``.env`` at or above the working
    directory is used; a missing file is
    fine, existing environment variables always win over the file.
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    defaults = Settings()
    settings = Settings(
        window_hours=_read_float('AQHI_WINDOW_HOURS', defaults.window_hours),
        match_max_distance_km=_read_float('AQHI_MATCH_MAX_DISTANCE_KM', defaults.match_max_distance_km),
        default_variant=os.getenv('AQHI_DEFAULT_VARIANT', defaults.default_variant),
        primary_source=os.getenv('AQHI_PRIMARY_SOURCE', defaults.primary_source),
        secondary_sources=_read_list('AQHI_SECONDARY_SOURCES', defaults.secondary_sources),
        breakpoint_file=os.getenv('AQHI_BREAKPOINT_FILE') or None,
        variant_file=os.getenv('AQHI_VARIANT_FILE') or None,
        unit_factor_file=os.getenv('AQHI_UNIT_FACTOR_FILE') or None,
        log_level=os.getenv('AQHI_LOG_LEVEL', defaults.log_level).upper(),
    )

    if settings.primary_source in settings.secondary_sources:
        raise ConfigurationError(
            f"Primary source '{settings.primary_source}' cannot also be a secondary source"
        )

    logger.debug(f"⚙️ Loaded settings: {settings}")
    return settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for hosts embedding the engine"""
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric_level, format='%(asctime)s - %(levelname)s - %(message)s')
