"""
Purpose: Coordinate validation and straight-line distance math.
What it does:
- Validates (lat, lon) pairs coming from driver devices and booking clients.
- Computes the great-circle (haversine) distance between two points.

The haversine distance is an approximation of how far apart two points are
on a sphere of radius 6371 km. It is NOT a road-network distance: a driver
across a river can be 400 m away here and 6 km away by road. Use the OSRM
adapter when road reachability matters.

Rule: pure functions only, no I/O.
"""

from __future__ import annotations

import math
from typing import Any, Tuple

# internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


class InvalidCoordinateError(ValueError):
    """Raised when a coordinate is missing, non-numeric, NaN or out of range."""
    pass


def validate_coordinate(coordinate: Any) -> LatLon:
    """
    Normalizes a (lat, lon) pair to floats and rejects anything that is not
    a real point on the globe.

    Negative values are fine (southern / western hemispheres). NaN, inf,
    latitudes outside [-90, 90] and longitudes outside [-180, 180] are not.
    """
    if coordinate is None:
        raise InvalidCoordinateError("coordinate is required")

    try:
        lat, lon = coordinate
    except (TypeError, ValueError):
        raise InvalidCoordinateError(f"coordinate must be a (lat, lon) pair, got {coordinate!r}")

    # bools are ints in python, but a True latitude is always a client bug
    if isinstance(lat, bool) or isinstance(lon, bool):
        raise InvalidCoordinateError(f"coordinate must be numeric, got {coordinate!r}")

    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(f"coordinate must be numeric, got {coordinate!r}")

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinateError(f"coordinate must be finite, got ({lat}, {lon})")

    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"latitude {lat} outside [-90, 90]")

    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinateError(f"longitude {lon} outside [-180, 180]")

    return (lat, lon)


def haversine_km(origin: LatLon, destination: LatLon) -> float:
    """
    Great-circle distance in kilometres between two (lat, lon) points.
    """
    lat1, lon1 = origin
    lat2, lon2 = destination

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c
