"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Accepts a pending Ride id, finds eligible drivers around the pickup, ranks
them and assigns the best one with a single atomic conditional write.

    dispatch(ride_id)
      1. ride no longer pending           -> ALREADY_RESOLVED (idempotent no-op)
      2. no eligible driver in range       -> NO_DRIVERS_AVAILABLE (caller retries later)
      3. rank candidates
      4. assign_driver(ride, best)         -> pending->accepted + available->on_trip, or nothing
           lost the ride to another writer -> ALREADY_RESOLVED
           driver taken meanwhile          -> try the next candidate, never the same one again
      5. ASSIGNED with the driver summary

No lock is held across scoring and writing: the write re-validates state.
Store or routing failures surface as DispatchInfrastructureError (retryable).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from drivers.policy import DispatchPolicy, default_dispatch_policy
from rides.models import Ride, RideStatus, utcnow
from routing.eta_service import HaversineEtaEstimator
from routing.osrm_client import OSRMError
from tracking.store import LocationStore
from .candidate_filter import find_candidates
from .models import AssignedDriver, DispatchOutcome, DispatchResult
from .repository import AssignmentResult, RideNotFoundError, StoreUnavailableError
from .scoring import rank_candidates

logger = logging.getLogger(__name__)


class DispatchInfrastructureError(Exception):
    """
    The store or a routing dependency failed mid-dispatch. No state changed;
    the caller should back off and retry with a fresh dispatch cycle.
    """
    retryable = True

    def __init__(self, ride_id: str, attempt: int, reason: str):
        super().__init__(f"Dispatch of ride {ride_id} failed on attempt {attempt}: {reason}")
        self.ride_id = ride_id
        self.attempt = attempt
        self.reason = reason


class Dispatcher:
    """
    Coordinates the assignment of a Ride to a Driver.

    ride_repository: see dispatch.repository (in-memory) or
                     backend rides_api.repositories (Django ORM).
    policy_provider: called once per dispatch so config changes apply
                     without restarting anything.
    eta_estimator:   defaults to straight-line ETA at the policy's average speed.
    """
    def __init__(
        self,
        ride_repository,
        location_store: LocationStore,
        policy_provider: Optional[Callable[[], DispatchPolicy]] = None,
        eta_estimator=None,
    ):
        self.ride_repository = ride_repository
        self.location_store = location_store
        self.policy_provider = policy_provider or default_dispatch_policy
        self.eta_estimator = eta_estimator

    def dispatch(
        self,
        ride_id: str,
        *,
        preferred_driver_id: Optional[str] = None,
        attempt: int = 1,
        policy: Optional[DispatchPolicy] = None,
        now: Optional[datetime] = None,
    ) -> DispatchOutcome:
        """
        Raises RideNotFoundError for an unknown ride and
        DispatchInfrastructureError when the store or routing is down.
        """
        logger.info("Dispatch attempt %d starting for ride %s", attempt, ride_id)
        try:
            policy = policy or self.policy_provider()
            return self._dispatch(ride_id, policy, preferred_driver_id, attempt, now or utcnow())
        except (StoreUnavailableError, OSRMError) as exc:
            logger.error("Dispatch attempt %d for ride %s hit an infrastructure error: %s", attempt, ride_id, exc)
            raise DispatchInfrastructureError(ride_id, attempt, str(exc)) from exc

    # --- pipeline ---

    def _dispatch(self, ride_id: str, policy: DispatchPolicy, preferred_driver_id: Optional[str],
                  attempt: int, now: datetime) -> DispatchOutcome:
        ride = self.ride_repository.get_ride(ride_id)
        if ride is None:
            raise RideNotFoundError(f"Ride {ride_id} not found")

        # 1. Idempotence: a resolved ride is never reprocessed
        if ride.status != RideStatus.PENDING:
            logger.info("Ride %s is %s, nothing to dispatch", ride_id, ride.status.value)
            return self._resolved(ride, attempt)

        # 2. Candidate search on one snapshot of the location store
        candidates = find_candidates(
            ride.pickup,
            location_store=self.location_store,
            driver_repository=self.ride_repository,
            max_distance_km=policy.matching_radius_km,
            min_rating=policy.min_driver_rating,
            limit=policy.max_candidates,
            now=now,
            eta_estimator=self.eta_estimator or HaversineEtaEstimator(policy.average_speed_kmh),
            staleness_window_seconds=policy.staleness_window_seconds,
        )

        if not candidates:
            logger.info(
                "No eligible drivers for ride %s within %.1f km (min rating %.1f)",
                ride_id, policy.matching_radius_km, policy.min_driver_rating,
            )
            return self._no_drivers(ride, policy, attempt, total_candidates=0)

        # 3. Ranking
        ranked = rank_candidates(candidates, preferred_driver_id,
                                 preferred_bonus=policy.preferred_driver_bonus)
        best = ranked[0]
        logger.info(
            "Best match for ride %s: %s (score %.2f, rating %.1f, %.2f km) out of %d",
            ride_id, best.driver_id, best.match_score, best.rating, best.distance_km, len(candidates),
        )
        if preferred_driver_id and not best.is_preferred:
            logger.info("Preferred driver %s not available near ride %s", preferred_driver_id, ride_id)

        # 4. Atomic conditional assignment, walking down the ranking
        for candidate in ranked:
            result = self.ride_repository.assign_driver(ride_id, candidate.driver_id, now)

            if result == AssignmentResult.ASSIGNED:
                logger.info("Ride %s dispatched to driver %s", ride_id, candidate.driver_id)
                return DispatchOutcome(
                    result=DispatchResult.ASSIGNED,
                    ride_id=ride_id,
                    ride_status=RideStatus.ACCEPTED.value,
                    attempt=attempt,
                    driver=AssignedDriver.from_candidate(candidate),
                    total_candidates=len(ranked),
                )

            if result == AssignmentResult.RIDE_NOT_PENDING:
                logger.warning("Ride %s was resolved by another dispatcher before assignment", ride_id)
                current = self.ride_repository.get_ride(ride_id) or ride
                return self._resolved(current, attempt)

            logger.warning(
                "Driver %s became unavailable before assignment to ride %s, trying next candidate",
                candidate.driver_id, ride_id,
            )

        # 5. Everyone we ranked got taken between snapshot and write
        return self._no_drivers(ride, policy, attempt, total_candidates=len(ranked))

    # --- outcomes ---

    def _resolved(self, ride: Ride, attempt: int) -> DispatchOutcome:
        return DispatchOutcome(
            result=DispatchResult.ALREADY_RESOLVED,
            ride_id=ride.id,
            ride_status=ride.status.value,
            attempt=attempt,
        )

    def _no_drivers(self, ride: Ride, policy: DispatchPolicy, attempt: int, total_candidates: int) -> DispatchOutcome:
        return DispatchOutcome(
            result=DispatchResult.NO_DRIVERS_AVAILABLE,
            ride_id=ride.id,
            ride_status=RideStatus.PENDING.value,
            attempt=attempt,
            total_candidates=total_candidates,
            radius_km=policy.matching_radius_km,
            min_rating=policy.min_driver_rating,
        )
