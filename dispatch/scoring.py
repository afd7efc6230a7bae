"""
Purpose: Ranking/selection model (the "who is best" layer).
What it does:
Takes candidates (already eligible) and produces an ordered list, best first.

Composite score, in points out of 100:

    rating      40   rating / 5.0
    distance    35   (max_distance - distance) / max_distance
    experience  15   total_trips / max_trips
    eta         10   (max_eta - eta) / max_eta

Every max_* is taken over the candidate set, so scores only rank drivers
within one dispatch attempt; they are not comparable across attempts.

Degenerate sets: when every candidate has the same value for a factor (a
single candidate, or everyone 2 km away), that factor is 1.0 for everyone.

Preferred driver: +PREFERRED_DRIVER_BONUS on match_score and the
is_preferred flag. The breakdown and base_score keep the honest numbers.

Tie-breaking is deterministic: preferred first, then match score (desc),
distance (asc), driver id (asc).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .models import MatchCandidate, ScoreBreakdown

PREFERRED_DRIVER_BONUS = 100.0
MAX_RATING = 5.0


@dataclass(frozen=True)
class ScoringWeights:
    rating: float = 40.0
    distance: float = 35.0
    experience: float = 15.0
    eta: float = 10.0

    def apply(self, breakdown: ScoreBreakdown) -> float:
        return (
            breakdown.rating * self.rating
            + breakdown.distance * self.distance
            + breakdown.experience * self.experience
            + breakdown.eta * self.eta
        )


DEFAULT_WEIGHTS = ScoringWeights()


def _is_constant(values: Sequence[float]) -> bool:
    return max(values) == min(values)


def _closeness(value: float, maximum: float, constant: bool) -> float:
    # lower is better: the candidate at the set maximum scores 0
    if constant or maximum <= 0:
        return 1.0
    return (maximum - value) / maximum


def normalize_factors(candidates: Sequence[MatchCandidate]) -> List[ScoreBreakdown]:
    """
    Per-candidate normalized factors, in input order.
    """
    if not candidates:
        return []

    ratings = [c.rating for c in candidates]
    distances = [c.distance_km for c in candidates]
    trips = [c.total_trips for c in candidates]
    etas = [c.eta_minutes for c in candidates]

    constant_rating = _is_constant(ratings)
    constant_distance = _is_constant(distances)
    constant_trips = _is_constant(trips)
    constant_eta = _is_constant(etas)

    max_distance = max(distances)
    max_trips = max(trips)
    max_eta = max(etas)

    breakdowns = []
    for candidate in candidates:
        rating = 1.0 if constant_rating else candidate.rating / MAX_RATING
        experience = 1.0 if (constant_trips or max_trips <= 0) else candidate.total_trips / max_trips

        breakdowns.append(ScoreBreakdown(
            rating=rating,
            distance=_closeness(candidate.distance_km, max_distance, constant_distance),
            experience=experience,
            eta=_closeness(candidate.eta_minutes, max_eta, constant_eta),
        ))
    return breakdowns


def _sort_key(candidate: MatchCandidate):
    return (
        0 if candidate.is_preferred else 1,
        -candidate.match_score,
        candidate.distance_km,
        candidate.driver_id,
    )


def rank_candidates(
    candidates: Sequence[MatchCandidate],
    preferred_driver_id: Optional[str] = None,
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    preferred_bonus: float = PREFERRED_DRIVER_BONUS,
) -> List[MatchCandidate]:
    """
    Score every candidate against the set and return them best first.
    Input candidates are not modified.
    """
    scored: List[MatchCandidate] = []
    for candidate, breakdown in zip(candidates, normalize_factors(candidates)):
        base_score = weights.apply(breakdown)
        is_preferred = preferred_driver_id is not None and candidate.driver_id == preferred_driver_id
        match_score = base_score + preferred_bonus if is_preferred else base_score

        scored.append(replace(
            candidate,
            breakdown=breakdown,
            base_score=base_score,
            match_score=match_score,
            is_preferred=is_preferred,
        ))

    scored.sort(key=_sort_key)
    return scored
