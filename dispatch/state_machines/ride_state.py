from datetime import datetime
from typing import Dict, FrozenSet, Optional

from rides.models import Ride, RideStatus, utcnow

class RideStateException(Exception):
    """Raised when an invalid ride transition is attempted."""
    pass

#pending -> accepted is owned by dispatch, the rest by trip collaborators
ALLOWED_TRANSITIONS: Dict[RideStatus, FrozenSet[RideStatus]] = {
    RideStatus.PENDING: frozenset({RideStatus.ACCEPTED, RideStatus.CANCELLED}),
    RideStatus.ACCEPTED: frozenset({RideStatus.IN_PROGRESS, RideStatus.CANCELLED}),
    RideStatus.IN_PROGRESS: frozenset({RideStatus.COMPLETED}),
    RideStatus.COMPLETED: frozenset(),
    RideStatus.CANCELLED: frozenset(),
}

def can_transition(current: RideStatus, target: RideStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())

def transition_ride(ride: Ride, target: RideStatus, now: Optional[datetime] = None) -> Ride:
    """
    Moves a ride to `target` in place.
    Callers must hold whatever lock guards the ride; this only checks the graph.
    """
    if not can_transition(ride.status, target):
        raise RideStateException(f"Cannot transition ride {ride.id} from {ride.status.value} to {target.value}")

    ride.status = target
    ride.updated_at = now or utcnow()
    return ride

def accept_ride(ride: Ride, driver_id: str, now: Optional[datetime] = None) -> Ride:
    """
    pending -> accepted with the chosen driver attached.
    """
    now = now or utcnow()
    transition_ride(ride, RideStatus.ACCEPTED, now)
    ride.driver_id = driver_id
    ride.accepted_at = now
    return ride
