import pytest

from dispatch.state_machines import (
    DriverStateException,
    RideStateException,
    accept_ride,
    can_transition,
    handle_driver_assignment,
    handle_location_report,
    handle_manual_status_change,
    handle_trip_finished,
    handle_went_offline,
    handle_went_quiet,
    transition_ride,
)
from drivers.models import DriverProfile, DriverStatus
from rides.models import Ride, RideStatus
from conftest import DROPOFF, NOW, PICKUP


def make_ride(status=RideStatus.PENDING):
    return Ride.new(PICKUP, DROPOFF, "standard", status=status)


def make_driver(status):
    return DriverProfile.new("d1", "Dee", rating=4.5, total_trips=10, status=status)


@pytest.mark.parametrize("current, target, allowed", [
    (RideStatus.PENDING, RideStatus.ACCEPTED, True),
    (RideStatus.PENDING, RideStatus.CANCELLED, True),
    (RideStatus.PENDING, RideStatus.IN_PROGRESS, False),
    (RideStatus.ACCEPTED, RideStatus.IN_PROGRESS, True),
    (RideStatus.ACCEPTED, RideStatus.PENDING, False),
    (RideStatus.IN_PROGRESS, RideStatus.COMPLETED, True),
    (RideStatus.IN_PROGRESS, RideStatus.CANCELLED, False),
    (RideStatus.COMPLETED, RideStatus.CANCELLED, False),
    (RideStatus.CANCELLED, RideStatus.PENDING, False),
])
def test_ride_transition_graph(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_accept_ride_attaches_driver():
    ride = accept_ride(make_ride(), "d1", NOW)
    assert ride.status == RideStatus.ACCEPTED
    assert ride.driver_id == "d1"
    assert ride.accepted_at == NOW


def test_illegal_ride_transition_raises():
    with pytest.raises(RideStateException):
        transition_ride(make_ride(RideStatus.COMPLETED), RideStatus.IN_PROGRESS)


def test_manual_toggle():
    assert handle_manual_status_change(make_driver(DriverStatus.OFFLINE), DriverStatus.AVAILABLE).status == DriverStatus.AVAILABLE
    assert handle_manual_status_change(make_driver(DriverStatus.INACTIVE), DriverStatus.OFFLINE).status == DriverStatus.OFFLINE
    # same status is a no-op, even on a trip
    on_trip = make_driver(DriverStatus.ON_TRIP)
    assert handle_manual_status_change(on_trip, DriverStatus.ON_TRIP) is on_trip


@pytest.mark.parametrize("target", [DriverStatus.AVAILABLE, DriverStatus.OFFLINE])
def test_driver_on_trip_cannot_toggle(target):
    with pytest.raises(DriverStateException):
        handle_manual_status_change(make_driver(DriverStatus.ON_TRIP), target)


def test_assignment_requires_available():
    assert handle_driver_assignment(make_driver(DriverStatus.AVAILABLE)).status == DriverStatus.ON_TRIP
    with pytest.raises(DriverStateException):
        handle_driver_assignment(make_driver(DriverStatus.INACTIVE))


def test_trip_finished_counts_only_completed_trips():
    done = handle_trip_finished(make_driver(DriverStatus.ON_TRIP), completed=True)
    cancelled = handle_trip_finished(make_driver(DriverStatus.ON_TRIP), completed=False)

    assert (done.status, done.total_trips) == (DriverStatus.AVAILABLE, 11)
    assert (cancelled.status, cancelled.total_trips) == (DriverStatus.AVAILABLE, 10)


def test_presence_transitions():
    assert handle_location_report(make_driver(DriverStatus.INACTIVE)).status == DriverStatus.AVAILABLE
    assert handle_location_report(make_driver(DriverStatus.ON_TRIP)).status == DriverStatus.ON_TRIP
    assert handle_went_quiet(make_driver(DriverStatus.AVAILABLE)).status == DriverStatus.INACTIVE
    assert handle_went_quiet(make_driver(DriverStatus.OFFLINE)).status == DriverStatus.OFFLINE
    with pytest.raises(DriverStateException):
        handle_went_offline(make_driver(DriverStatus.ON_TRIP))
