#Purpose: Candidate Finder (hard rules + geography).
#Builds the base candidate set before scoring:
#fresh location in the Location Store (staleness window)
#driver profile is available
#rating floor
#straight-line distance to pickup within the matching radius
#Then caps the set closest-first so the scoring engine input stays bounded,
#and attaches an ETA per candidate.

#Output: "rule-qualified candidates" (still not ranked).

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from drivers.models import DriverProfile
from drivers.selection import is_eligible
from routing.eta_service import HaversineEtaEstimator
from routing.geo import LatLon, haversine_km, validate_coordinate
from tracking.models import DriverLocationRecord
from tracking.store import LocationStore
from .models import MatchCandidate

logger = logging.getLogger(__name__)


def find_candidates(
    pickup: LatLon,
    *,
    location_store: LocationStore,
    driver_repository,
    max_distance_km: float,
    min_rating: float = 0.0,
    limit: int = 10,
    now: Optional[datetime] = None,
    eta_estimator=None,
    staleness_window_seconds: Optional[float] = None,
) -> List[MatchCandidate]:
    """
    Drivers near `pickup` who may be offered the ride, closest first.

    Works on one point-in-time snapshot of the Location Store; nothing here
    blocks on the store again after that read.
    """
    pickup = validate_coordinate(pickup)
    if limit <= 0:
        return []

    snapshot = location_store.active_locations(now, staleness_window_seconds)
    if not snapshot:
        return []

    profiles = driver_repository.get_drivers([record.driver_id for record in snapshot])

    nearby: List[Tuple[float, DriverLocationRecord, DriverProfile]] = []
    for record in snapshot:
        profile = profiles.get(record.driver_id)
        if profile is None:
            # broadcasting but unknown to the driver registry
            continue

        if not is_eligible(profile, min_rating):
            continue

        distance_km = haversine_km(record.location, pickup)
        if distance_km > max_distance_km:
            continue

        nearby.append((distance_km, record, profile))

    # closest first, driver id keeps equal distances deterministic
    nearby.sort(key=lambda item: (item[0], item[2].id))
    nearby = nearby[:limit]

    if not nearby:
        return []

    eta_estimator = eta_estimator or HaversineEtaEstimator()
    etas = eta_estimator.estimate_minutes(pickup, [(record.location, distance_km) for distance_km, record, _ in nearby])

    candidates = [
        MatchCandidate(
            driver_id=profile.id,
            name=profile.name,
            rating=profile.rating,
            total_trips=profile.total_trips,
            location=record.location,
            distance_km=distance_km,
            eta_minutes=eta,
        )
        for (distance_km, record, profile), eta in zip(nearby, etas)
    ]

    logger.debug("Found %d candidate(s) within %.1f km of %s", len(candidates), max_distance_km, pickup)
    return candidates
