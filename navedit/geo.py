"""Local metric scale factors for geographic coordinates."""
from __future__ import annotations

import math

# WGS-72 ellipsoid series (Bowditch, American Practical Navigator).
_C1 = 111412.84
_C2 = -93.5
_C3 = 0.118
_C4 = 111132.92
_C5 = -559.82
_C6 = 1.175
_C7 = 0.0023


def coordinate_scale(latitude: float) -> tuple[float, float]:
    """Return ``(degrees_lon_per_meter, degrees_lat_per_meter)`` at ``latitude``."""

    radlat = math.radians(latitude)
    meters_per_deg_lon = abs(
        _C1 * math.cos(radlat) + _C2 * math.cos(3 * radlat) + _C3 * math.cos(5 * radlat)
    )
    meters_per_deg_lat = abs(
        _C4
        + _C5 * math.cos(2 * radlat)
        + _C6 * math.cos(4 * radlat)
        + _C7 * math.cos(6 * radlat)
    )
    return 1.0 / meters_per_deg_lon, 1.0 / meters_per_deg_lat
