"""
geo_utils.py - Geographic helpers
--------------------------------
Coordinate validation and great-circle distance.
"""
import math
from typing import Optional

EARTH_RADIUS_KM = 6371


def is_valid_latitude(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) \
        and math.isfinite(value) and -90 <= value <= 90


def is_valid_longitude(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) \
        and math.isfinite(value) and -180 <= value <= 180


def is_valid_coordinate(lat, lon) -> bool:
    """True if ``lat``/``lon`` are numbers inside the WGS84 ranges."""
    return is_valid_latitude(lat) and is_valid_longitude(lon)


def haversine_km(lat1, lon1, lat2, lon2) -> Optional[float]:
    """
    Distance between two points in kilometres.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        Distance rounded to two decimals, or None for invalid input
    """
    if not (is_valid_coordinate(lat1, lon1) and is_valid_coordinate(lat2, lon2)):
        return None

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)
