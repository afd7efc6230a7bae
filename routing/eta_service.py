#Purpose: ETA estimation policy.
#Converts distances (or routing outputs) into "arrives in X minutes" predictions used by:
#customer-facing pickup ETA
#dispatch scoring features (ETA factor)
#Keeps ETA logic separate from route computation and from scoring.

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .geo import LatLon, haversine_km
from .osrm_client import OSRMClient

logger = logging.getLogger(__name__)

# Assumed average urban speed when no road network data is available.
DEFAULT_AVERAGE_SPEED_KMH = 30.0


class HaversineEtaEstimator:
    """
    Straight-line ETA: distance / average urban speed.
    """
    def __init__(self, average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH):
        if average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be > 0")
        self.average_speed_kmh = average_speed_kmh

    def minutes_for_distance(self, distance_km: float) -> float:
        return distance_km / self.average_speed_kmh * 60.0

    def estimate_minutes(self, pickup: LatLon, legs: Sequence[Tuple[LatLon, float]]) -> List[float]:
        """
        legs: (driver position, haversine km to pickup) per candidate.
        Returns ETA minutes in the same order.
        """
        return [self.minutes_for_distance(distance_km) for _, distance_km in legs]


class OsrmEtaEstimator:
    """
    Road-network ETA using one OSRM /table call for the whole candidate set.

    Drivers OSRM cannot route fall back to the straight-line estimate so a
    single unroutable point does not knock the candidate out of the set.
    OSRMError from the client propagates to the caller.
    """
    def __init__(self, osrm_client: OSRMClient, fallback: HaversineEtaEstimator = None):
        self.osrm_client = osrm_client
        self.fallback = fallback or HaversineEtaEstimator()

    def estimate_minutes(self, pickup: LatLon, legs: Sequence[Tuple[LatLon, float]]) -> List[float]:
        if not legs:
            return []

        durations = self.osrm_client.durations_to([position for position, _ in legs], pickup)

        etas: List[float] = []
        for index, (position, distance_km) in enumerate(legs):
            seconds = durations[index] if index < len(durations) else None
            if seconds is None:
                logger.debug("OSRM could not route %s -> %s, using straight-line ETA", position, pickup)
                etas.append(self.fallback.minutes_for_distance(distance_km))
            else:
                etas.append(float(seconds) / 60.0)
        return etas


def straight_line_eta_minutes(origin: LatLon, destination: LatLon,
                              average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH) -> float:
    """Convenience helper for one-off ETAs (e.g. passenger tracking view)."""
    return HaversineEtaEstimator(average_speed_kmh).minutes_for_distance(haversine_km(origin, destination))
