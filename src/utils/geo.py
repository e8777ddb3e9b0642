"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great-circle distance between two lat/lon points in kilometers.

    Args:
        lat1: Latitude of the first point, decimal degrees.
        lon1: Longitude of the first point, decimal degrees.
        lat2: Latitude of the second point, decimal degrees.
        lon2: Longitude of the second point, decimal degrees.

    Returns:
        Distance in kilometers (always >= 0).

    Notes:
        Inputs are not range-checked. Out-of-range coordinates still give a
        number, it just means nothing; callers validate before storing.
    """

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lon / 2
    ) ** 2
    # Rounding can push `a` slightly past 1.0 for antipodal points.
    a = min(max(a, 0.0), 1.0)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two lat/lon points in meters."""

    return haversine_km(lat1, lon1, lat2, lon2) * 1000.0


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Return True when latitude is in [-90, 90] and longitude in [-180, 180]."""

    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0
