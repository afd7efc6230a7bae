"""
Purpose: Transient data structures of one dispatch attempt.
What it does:
- MatchCandidate: a driver profile joined with its latest location, the
  distance/ETA to the pickup and (after scoring) its match score.
- DispatchOutcome: the typed result of Dispatcher.dispatch().

Nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from routing.geo import LatLon


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Normalized factors in [0, 1], relative to the candidate set they were
    computed in. Only comparable within one dispatch attempt.
    """
    rating: float
    distance: float
    experience: float
    eta: float


@dataclass(frozen=True)
class MatchCandidate:
    driver_id: str
    name: str
    rating: float
    total_trips: int
    location: LatLon
    distance_km: float
    eta_minutes: float

    # filled in by dispatch.scoring.rank_candidates
    breakdown: Optional[ScoreBreakdown] = None
    base_score: float = 0.0
    match_score: float = 0.0
    is_preferred: bool = False


class DispatchResult(str, Enum):
    ASSIGNED = "assigned"
    # ride was no longer pending (dispatched twice, lost a race, cancelled)
    ALREADY_RESOLVED = "already_resolved"
    # expected terminal state for this attempt, the caller retries later
    NO_DRIVERS_AVAILABLE = "no_drivers_available"


@dataclass(frozen=True)
class AssignedDriver:
    id: str
    name: str
    rating: float
    distance_km: float
    eta_minutes: float
    match_score: float

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> AssignedDriver:
        return cls(
            id=candidate.driver_id,
            name=candidate.name,
            rating=candidate.rating,
            distance_km=candidate.distance_km,
            eta_minutes=candidate.eta_minutes,
            match_score=candidate.match_score,
        )


@dataclass(frozen=True)
class DispatchOutcome:
    result: DispatchResult
    ride_id: str
    ride_status: str
    attempt: int = 1
    driver: Optional[AssignedDriver] = None
    total_candidates: int = 0
    radius_km: Optional[float] = None
    min_rating: Optional[float] = None

    @property
    def assigned(self) -> bool:
        return self.result == DispatchResult.ASSIGNED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "result": self.result.value,
            "ride_id": self.ride_id,
            "ride_status": self.ride_status,
            "attempt": self.attempt,
            "total_candidates": self.total_candidates,
        }
        if self.driver is not None:
            payload["driver"] = {
                "id": self.driver.id,
                "name": self.driver.name,
                "rating": self.driver.rating,
                "distance_km": round(self.driver.distance_km, 3),
                "eta_minutes": round(self.driver.eta_minutes, 1),
                "match_score": round(self.driver.match_score, 2),
            }
        if self.result == DispatchResult.NO_DRIVERS_AVAILABLE:
            payload["radius_km"] = self.radius_km
            payload["min_rating"] = self.min_rating
        return payload
