#Marks routing as a package.
#Re-exports the geo helpers, ETA estimators and the OSRM adapter so other
#modules import from routing without knowing internal file names.
#No business logic.

from .geo import LatLon, InvalidCoordinateError, validate_coordinate, haversine_km
from .eta_service import HaversineEtaEstimator, OsrmEtaEstimator, straight_line_eta_minutes
from .osrm_client import OSRMClient, OSRMError

__all__ = [
    "LatLon",
    "InvalidCoordinateError",
    "validate_coordinate",
    "haversine_km",
    "HaversineEtaEstimator",
    "OsrmEtaEstimator",
    "straight_line_eta_minutes",
    "OSRMClient",
    "OSRMError",
]
