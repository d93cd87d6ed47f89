"""
Half-up rounding, matching how the published AQHI and AQI figures are rounded
(Python's ``round`` uses banker's rounding).
"""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    if value < 0:
        return -round_half_up(-value, digits)
    return math.floor(value * scale + 0.5) / scale


def round_to_int(value: float) -> int:
    return int(round_half_up(value))
