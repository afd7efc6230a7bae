"""
Purpose: Durable state the dispatcher reads and conditionally writes.
What it does:
- Owns Rides and DriverProfiles (in memory here, Django ORM in backend/).
- Provides the ONE serialization point of dispatch:

      assign_driver(ride_id, driver_id)
          -> ride.status  pending   -> accepted  (driver attached)
          -> driver.status available -> on_trip
         both or neither, decided atomically at write time.

- Provides the collaborator transitions (start / complete / cancel) and the
  driver's manual status toggle, all under the same lock as assignment so
  the driver and the dispatcher can never race the profile into an
  inconsistent state.

Repository contract (duck-typed, also implemented by backend/rides_api):
    add_ride, get_ride, list_rides
    add_driver, get_driver, get_drivers
    assign_driver, start_ride, complete_ride, cancel_ride
    set_driver_status, mark_drivers_active, mark_drivers_inactive, mark_driver_offline

Rule: No scoring, no candidate search. State + atomic writes only.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from drivers.models import DriverProfile, DriverStatus
from rides.models import Ride, RideStatus, utcnow
from .state_machines.driver_state import (
    handle_driver_assignment,
    handle_location_report,
    handle_manual_status_change,
    handle_trip_finished,
    handle_went_offline,
    handle_went_quiet,
)
from .state_machines.ride_state import accept_ride, transition_ride


class RideNotFoundError(LookupError):
    pass


class DriverNotFoundError(LookupError):
    pass


class StoreUnavailableError(Exception):
    """
    The backing store could not be reached or the query failed.
    Retryable: the caller should back off and try again.
    """
    pass


class AssignmentResult(str, Enum):
    ASSIGNED = "assigned"
    RIDE_NOT_PENDING = "ride_not_pending"
    DRIVER_UNAVAILABLE = "driver_unavailable"


class InMemoryRideRepository:
    """
    Thread-safe in-process repository.

    A single lock guards rides and drivers together: the conditional
    assignment touches both, so splitting the lock would reopen the window
    between "ride still pending" and "driver still available".
    Reads return copies so nobody can mutate state behind the lock.
    """
    def __init__(self, drivers: Iterable[DriverProfile] = ()):
        self._lock = threading.Lock()
        self._rides: Dict[str, Ride] = {}
        self._drivers: Dict[str, DriverProfile] = {}
        for driver in drivers:
            self._drivers[driver.id] = driver

    # --- Rides ---

    def add_ride(self, ride: Ride) -> Ride:
        with self._lock:
            if ride.id in self._rides:
                #idempotency : dont double insert
                return replace(self._rides[ride.id])
            self._rides[ride.id] = replace(ride)
            return replace(ride)

    def get_ride(self, ride_id: str) -> Optional[Ride]:
        with self._lock:
            ride = self._rides.get(ride_id)
            return replace(ride) if ride else None

    def list_rides(self, status: Optional[RideStatus] = None) -> List[Ride]:
        with self._lock:
            return [
                replace(ride) for ride in self._rides.values()
                if status is None or ride.status == status
            ]

    # --- Drivers ---

    def add_driver(self, driver: DriverProfile) -> DriverProfile:
        with self._lock:
            self._drivers[driver.id] = driver
            return driver

    def get_driver(self, driver_id: str) -> Optional[DriverProfile]:
        with self._lock:
            return self._drivers.get(driver_id)

    def get_drivers(self, driver_ids: Iterable[str]) -> Dict[str, DriverProfile]:
        """
        Batch lookup. Unknown ids are simply absent from the result.
        """
        with self._lock:
            return {
                driver_id: self._drivers[driver_id]
                for driver_id in driver_ids
                if driver_id in self._drivers
            }

    # --- The atomic conditional write ---

    def assign_driver(self, ride_id: str, driver_id: str, now: Optional[datetime] = None) -> AssignmentResult:
        """
        Assign only if the ride is still pending AND the driver is still
        available at the moment of the write. Nothing changes otherwise.
        """
        now = now or utcnow()
        with self._lock:
            ride = self._rides.get(ride_id)
            if ride is None:
                raise RideNotFoundError(f"Ride {ride_id} not found")

            if ride.status != RideStatus.PENDING:
                return AssignmentResult.RIDE_NOT_PENDING

            driver = self._drivers.get(driver_id)
            if driver is None or driver.status != DriverStatus.AVAILABLE:
                return AssignmentResult.DRIVER_UNAVAILABLE

            # both preconditions hold under the lock, now write both sides
            self._drivers[driver_id] = handle_driver_assignment(driver)
            accept_ride(ride, driver_id, now)
            return AssignmentResult.ASSIGNED

    # --- Trip collaborators ---

    def start_ride(self, ride_id: str, now: Optional[datetime] = None) -> Ride:
        with self._lock:
            ride = self._require_ride(ride_id)
            transition_ride(ride, RideStatus.IN_PROGRESS, now)
            return replace(ride)

    def complete_ride(self, ride_id: str, now: Optional[datetime] = None) -> Ride:
        with self._lock:
            ride = self._require_ride(ride_id)
            transition_ride(ride, RideStatus.COMPLETED, now)
            self._release_driver(ride.driver_id, completed=True)
            return replace(ride)

    def cancel_ride(self, ride_id: str, now: Optional[datetime] = None) -> Ride:
        with self._lock:
            ride = self._require_ride(ride_id)
            transition_ride(ride, RideStatus.CANCELLED, now)
            self._release_driver(ride.driver_id, completed=False)
            return replace(ride)

    # --- Driver availability ---

    def set_driver_status(self, driver_id: str, status: DriverStatus) -> DriverProfile:
        """
        The driver's own toggle. Raises DriverStateException while on a trip.
        """
        with self._lock:
            driver = self._require_driver(driver_id)
            updated = handle_manual_status_change(driver, status)
            self._drivers[driver_id] = updated
            return updated

    def mark_drivers_active(self, driver_ids: Iterable[str]) -> List[str]:
        """
        offline/inactive -> available for drivers who just reported a location.
        Returns the ids that actually changed.
        """
        return self._apply_to_drivers(driver_ids, handle_location_report)

    def mark_drivers_inactive(self, driver_ids: Iterable[str]) -> List[str]:
        """
        available -> inactive for drivers who stopped reporting.
        Drivers on a trip or already offline are left alone.
        """
        return self._apply_to_drivers(driver_ids, handle_went_quiet)

    def mark_driver_offline(self, driver_id: str) -> DriverProfile:
        with self._lock:
            driver = self._require_driver(driver_id)
            updated = handle_went_offline(driver)
            self._drivers[driver_id] = updated
            return updated

    # --- helpers (call with the lock held) ---

    def _apply_to_drivers(self, driver_ids: Iterable[str], transition) -> List[str]:
        changed: List[str] = []
        with self._lock:
            for driver_id in driver_ids:
                driver = self._drivers.get(driver_id)
                if driver is None:
                    continue
                updated = transition(driver)
                if updated.status != driver.status:
                    self._drivers[driver_id] = updated
                    changed.append(driver_id)
        return changed

    def _require_ride(self, ride_id: str) -> Ride:
        ride = self._rides.get(ride_id)
        if ride is None:
            raise RideNotFoundError(f"Ride {ride_id} not found")
        return ride

    def _require_driver(self, driver_id: str) -> DriverProfile:
        driver = self._drivers.get(driver_id)
        if driver is None:
            raise DriverNotFoundError(f"Driver {driver_id} not found")
        return driver

    def _release_driver(self, driver_id: Optional[str], completed: bool) -> None:
        if not driver_id:
            return
        driver = self._drivers.get(driver_id)
        if driver is not None:
            self._drivers[driver_id] = handle_trip_finished(driver, completed)
