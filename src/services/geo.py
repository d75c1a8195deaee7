from __future__ import annotations

import math
from typing import Tuple

from models import Coordinate

EARTH_RADIUS_M = 6371000.0
WALK_SPEED_M_PER_MIN = 80.0  # ~4.8 km/h


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # rounding can push a a hair past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def walk_time_minutes(distance_m: float, speed_m_per_min: float = WALK_SPEED_M_PER_MIN) -> int:
    if speed_m_per_min <= 0:
        speed_m_per_min = WALK_SPEED_M_PER_MIN
    return max(1, math.ceil(max(distance_m, 0.0) / speed_m_per_min))


def expand_bbox_from_center(lon: float, lat: float, km: float) -> Tuple[float, float, float, float]:
    """Create a rectangular bbox around (lon,lat) by ±km in both axes.

    Returns (min_lon, min_lat, max_lon, max_lat), clipped to valid ranges.
    """
    # degrees per km
    dlat = km / 110.574
    cos_lat = math.cos(math.radians(lat))
    dlon = km / (111.320 * cos_lat) if abs(cos_lat) > 1e-6 else 180.0
    min_lon = max(-180.0, lon - dlon)
    max_lon = min(180.0, lon + dlon)
    min_lat = max(-90.0, lat - dlat)
    max_lat = min(90.0, lat + dlat)
    return (min_lon, min_lat, max_lon, max_lat)
