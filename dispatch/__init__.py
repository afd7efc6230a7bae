#Expose the high-level pipeline pieces:
#Candidate finder (hard rules + radius)
#Scoring / ranking
#Dispatcher orchestrator (the "one call" entry point)
#Auto-dispatch trigger with bounded retries

from .candidate_filter import find_candidates
from .scoring import rank_candidates
from .dispatcher import Dispatcher, DispatchInfrastructureError #Dispatcher.dispatch(ride_id) is the main entry point
from .auto_dispatch import AutoDispatchScheduler
from .models import DispatchOutcome, DispatchResult, MatchCandidate
from .repository import InMemoryRideRepository, AssignmentResult, RideNotFoundError, StoreUnavailableError

__all__ = [
    "find_candidates",
    "rank_candidates",
    "Dispatcher",
    "DispatchInfrastructureError",
    "AutoDispatchScheduler",
    "DispatchOutcome",
    "DispatchResult",
    "MatchCandidate",
    "InMemoryRideRepository",
    "AssignmentResult",
    "RideNotFoundError",
    "StoreUnavailableError",
]
