"""
Error taxonomy for the AQHI fusion engine.

Only programmer/configuration mistakes are raised. Missing data (index out of
scale, no nearby monitoring point, nothing to compute an AQHI from) is an
everyday condition and is returned as ``None`` or as an explicit "no result"
value instead.
"""


class AqhiFusionError(Exception):
    """Base class for every error raised by aqhi_fusion"""


class ConfigurationError(AqhiFusionError, ValueError):
    """Unknown pollutant, unknown formula variant, malformed breakpoint table or unit"""


class InvalidReadingError(AqhiFusionError, ValueError):
    """A reading that cannot be stored in the window log"""
