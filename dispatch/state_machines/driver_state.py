from dataclasses import replace
from typing import Dict, FrozenSet

from drivers.models import DriverProfile, DriverStatus

class DriverStateException(Exception):
    """Raised when an invalid driver transition is attempted."""
    pass

# What the driver can do from the app's status toggle.
# ON_TRIP is released only by trip completion or cancellation.
MANUAL_TRANSITIONS: Dict[DriverStatus, FrozenSet[DriverStatus]] = {
    DriverStatus.OFFLINE: frozenset({DriverStatus.AVAILABLE}),
    DriverStatus.AVAILABLE: frozenset({DriverStatus.OFFLINE}),
    DriverStatus.INACTIVE: frozenset({DriverStatus.AVAILABLE, DriverStatus.OFFLINE}),
}

def handle_manual_status_change(driver: DriverProfile, new_status: DriverStatus) -> DriverProfile:
    """
    Called when the driver flips their own availability toggle.
    Setting the status they already have is a no-op.
    """
    if driver.status == new_status:
        return driver

    if new_status not in MANUAL_TRANSITIONS.get(driver.status, frozenset()):
        raise DriverStateException(
            f"Driver {driver.id} cannot switch from {driver.status.value} to {new_status.value}"
        )

    # Because DriverProfile is a frozen dataclass, we must return a new instance via replace
    return replace(driver, status=new_status)

def handle_driver_assignment(driver: DriverProfile) -> DriverProfile:
    """
    Called by dispatch inside the conditional assignment write.
    """
    if driver.status != DriverStatus.AVAILABLE:
        raise DriverStateException(f"Driver {driver.id} is {driver.status.value}, not available")

    return replace(driver, status=DriverStatus.ON_TRIP)

def handle_trip_finished(driver: DriverProfile, completed: bool) -> DriverProfile:
    """
    Releases a driver after their ride completes or is cancelled.
    Only completed trips count towards experience.
    """
    if driver.status != DriverStatus.ON_TRIP:
        return driver

    total_trips = driver.total_trips + 1 if completed else driver.total_trips
    return replace(driver, status=DriverStatus.AVAILABLE, total_trips=total_trips)

def handle_location_report(driver: DriverProfile) -> DriverProfile:
    """
    Sharing location puts an offline or inactive driver back on duty.
    """
    if driver.status in (DriverStatus.OFFLINE, DriverStatus.INACTIVE):
        return replace(driver, status=DriverStatus.AVAILABLE)
    return driver

def handle_went_quiet(driver: DriverProfile) -> DriverProfile:
    """
    Staleness sweep: an available driver with no recent report becomes inactive.
    """
    if driver.status == DriverStatus.AVAILABLE:
        return replace(driver, status=DriverStatus.INACTIVE)
    return driver

def handle_went_offline(driver: DriverProfile) -> DriverProfile:
    if driver.status == DriverStatus.ON_TRIP:
        raise DriverStateException(f"Driver {driver.id} cannot go offline during a trip")
    return replace(driver, status=DriverStatus.OFFLINE)
