from .ride_state import RideStateException, accept_ride, can_transition, transition_ride
from .driver_state import (
    DriverStateException,
    handle_driver_assignment,
    handle_location_report,
    handle_manual_status_change,
    handle_trip_finished,
    handle_went_offline,
    handle_went_quiet,
)

__all__ = [
    "RideStateException",
    "accept_ride",
    "can_transition",
    "transition_ride",
    "DriverStateException",
    "handle_driver_assignment",
    "handle_location_report",
    "handle_manual_status_change",
    "handle_trip_finished",
    "handle_went_offline",
    "handle_went_quiet",
]
