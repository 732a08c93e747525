"""
Geometry helpers shared by every aggregator.
Planar distance for small deployment areas, haversine for larger ones,
fixed-precision grid keys and the single divide-by-zero guard.
"""

import math
from typing import NamedTuple, Optional

KM_PER_DEGREE = 111.32
EARTH_RADIUS_KM = 6371


def planar_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return math.sqrt((lat2 - lat1) ** 2 + (lng2 - lng1) ** 2) * KM_PER_DEGREE


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = math.sin(delta_lat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_KM * c


def safe_ratio(numerator, denominator, default=0.0):
    """Return numerator / denominator, or ``default`` when the denominator is zero."""
    if not denominator:
        return default
    return numerator / denominator


def percent_change(current: float, previous: float) -> Optional[float]:
    ratio = safe_ratio(current - previous, previous, None)
    if ratio is None:
        return None
    return ratio * 100


def quantize(value: float, precision: int) -> int:
    # half-up, so 0.125 -> 0.13 at precision 2 (Python's round() is half-even)
    return math.floor(value * 10 ** precision + 0.5)


class GridKey(NamedTuple):
    """A coordinate snapped to a fixed-precision grid cell."""
    lat_units: int
    lng_units: int
    precision: int

    @classmethod
    def from_coordinates(cls, lat: float, lng: float, precision: int) -> 'GridKey':
        return cls(quantize(lat, precision), quantize(lng, precision), precision)

    @property
    def lat(self) -> float:
        return self.lat_units / 10 ** self.precision

    @property
    def lng(self) -> float:
        return self.lng_units / 10 ** self.precision

    def label(self) -> str:
        return f"{self.lat:.{self.precision}f},{self.lng:.{self.precision}f}"
