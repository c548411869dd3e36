"""Centralized geographic distance and kinematics calculations.

This module provides the Haversine great-circle distance used by every
other check in the engine (jump detection, region containment and
geocode reconciliation), plus the speed derived from it.
"""

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0

MILLIS_PER_HOUR = 3_600_000


def distance_km(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Uses the Haversine formula on a sphere of radius 6371 km. NaN inputs
    propagate to a NaN result; callers are expected to run the coordinate
    sanity check first.

    Args:
        lat1: Latitude of first point in degrees
        lng1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lng2: Longitude of second point in degrees

    Returns:
        Distance between the two points in kilometers
    """
    lat1, lng1, lat2, lng2 = map(radians, [lat1, lng1, lat2, lng2])
    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters (for comparisons against GPS accuracy)."""
    return distance_km(lat1, lng1, lat2, lng2) * 1000.0


def elapsed_hours(start_millis: int, end_millis: int) -> float:
    """Convert a pair of epoch-millisecond timestamps into elapsed hours."""
    return (end_millis - start_millis) / MILLIS_PER_HOUR


def speed_kmh(distance: float, hours: float) -> float:
    """Average speed for a distance (km) covered in the given time (hours).

    The caller must guard hours <= 0; no movement window can be evaluated
    there and this function does not special-case it.
    """
    return distance / hours
