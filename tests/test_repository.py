import pytest

from dispatch.repository import AssignmentResult, DriverNotFoundError, RideNotFoundError
from dispatch.state_machines import DriverStateException, RideStateException
from drivers.models import DriverStatus
from rides.models import RideStatus


def test_assign_writes_both_sides(repository, pending_ride, now):
    result = repository.assign_driver(pending_ride.id, "drv-alice", now)

    ride = repository.get_ride(pending_ride.id)
    assert result == AssignmentResult.ASSIGNED
    assert ride.status == RideStatus.ACCEPTED
    assert ride.driver_id == "drv-alice"
    assert ride.accepted_at == now
    assert repository.get_driver("drv-alice").status == DriverStatus.ON_TRIP


def test_assign_to_resolved_ride_changes_nothing(repository, pending_ride):
    repository.assign_driver(pending_ride.id, "drv-alice")

    assert repository.assign_driver(pending_ride.id, "drv-bob") == AssignmentResult.RIDE_NOT_PENDING
    assert repository.get_ride(pending_ride.id).driver_id == "drv-alice"
    assert repository.get_driver("drv-bob").status == DriverStatus.AVAILABLE


@pytest.mark.parametrize("driver_id", ["drv-erin", "no-such-driver"])
def test_assign_unavailable_driver_leaves_ride_pending(repository, pending_ride, driver_id):
    assert repository.assign_driver(pending_ride.id, driver_id) == AssignmentResult.DRIVER_UNAVAILABLE
    ride = repository.get_ride(pending_ride.id)
    assert ride.status == RideStatus.PENDING
    assert ride.driver_id is None


def test_assign_unknown_ride(repository):
    with pytest.raises(RideNotFoundError):
        repository.assign_driver("missing", "drv-alice")


def test_returned_rides_are_copies(repository, pending_ride):
    copy = repository.get_ride(pending_ride.id)
    copy.status = RideStatus.CANCELLED
    assert repository.get_ride(pending_ride.id).status == RideStatus.PENDING


def test_add_ride_is_idempotent(repository, pending_ride):
    repository.assign_driver(pending_ride.id, "drv-alice")
    again = repository.add_ride(pending_ride)
    assert again.status == RideStatus.ACCEPTED
    assert len(repository.list_rides()) == 1


def test_trip_lifecycle_releases_driver(repository, pending_ride):
    repository.assign_driver(pending_ride.id, "drv-bob")
    repository.start_ride(pending_ride.id)
    ride = repository.complete_ride(pending_ride.id)

    bob = repository.get_driver("drv-bob")
    assert ride.status == RideStatus.COMPLETED
    assert bob.status == DriverStatus.AVAILABLE
    assert bob.total_trips == 121
    assert repository.list_rides(RideStatus.COMPLETED)[0].id == pending_ride.id


def test_cancel_accepted_ride_frees_driver_without_credit(repository, pending_ride):
    repository.assign_driver(pending_ride.id, "drv-bob")
    repository.cancel_ride(pending_ride.id)

    bob = repository.get_driver("drv-bob")
    assert bob.status == DriverStatus.AVAILABLE
    assert bob.total_trips == 120


def test_completed_ride_cannot_be_cancelled(repository, pending_ride):
    repository.assign_driver(pending_ride.id, "drv-bob")
    repository.start_ride(pending_ride.id)
    repository.complete_ride(pending_ride.id)

    with pytest.raises(RideStateException):
        repository.cancel_ride(pending_ride.id)


def test_driver_toggle(repository, pending_ride):
    assert repository.set_driver_status("drv-erin", DriverStatus.AVAILABLE).status == DriverStatus.AVAILABLE

    repository.assign_driver(pending_ride.id, "drv-erin")
    with pytest.raises(DriverStateException):
        repository.set_driver_status("drv-erin", DriverStatus.OFFLINE)

    with pytest.raises(DriverNotFoundError):
        repository.set_driver_status("nobody", DriverStatus.AVAILABLE)


def test_bulk_presence_updates_report_changes(repository):
    assert repository.mark_drivers_inactive(["drv-alice", "drv-erin", "nobody"]) == ["drv-alice"]
    assert repository.mark_drivers_active(["drv-alice", "drv-erin", "drv-bob"]) == ["drv-alice", "drv-erin"]
