import uuid

import pytest
from django.db import DatabaseError
from rest_framework.test import APIClient

from dispatch.repository import AssignmentResult, RideNotFoundError, StoreUnavailableError
from drivers.models import DriverStatus
from rides.models import RideStatus

pytestmark = pytest.mark.django_db

PICKUP = {"lat": -1.9441, "lng": 30.0619}
DROPOFF = {"lat": -1.9706, "lng": 30.1044}


@pytest.fixture(autouse=True)
def services(db):
    from rides_api.services import get_services, reset_services
    from rides_api.models import SystemSetting

    SystemSetting.objects.create(key="auto_dispatch", value=False)
    reset_services()
    yield get_services()
    reset_services()


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def categories():
    from rides_api.models import CarCategory
    return [
        CarCategory.objects.create(id="standard", name="Standard 4-Seat", base_fare=2000,
                                   price_per_km=600, minimum_fare=3000, capacity=4),
        CarCategory.objects.create(id="xl", name="Family 7-Seat", base_fare=4000,
                                   price_per_km=800, minimum_fare=6000, capacity=7, is_active=False),
    ]


@pytest.fixture
def fleet(categories):
    from rides_api.models import Driver
    return {
        "near": Driver.objects.create(name="Near Nadia", rating=4.8, total_trips=300,
                                      status=Driver.Status.OFFLINE, category=categories[0]),
        "far": Driver.objects.create(name="Far Felix", rating=4.9, total_trips=900,
                                     status=Driver.Status.OFFLINE, category=categories[0]),
        "low": Driver.objects.create(name="Low Lou", rating=3.1, total_trips=50,
                                     status=Driver.Status.OFFLINE, category=categories[0]),
    }


def report(client, driver, lat, lng, **extra):
    payload = {"lat": lat, "lng": lng}
    payload.update(extra)
    return client.post(f"/api/v1/drivers/{driver.id}/location/", payload, format="json")


@pytest.fixture
def on_duty(client, fleet):
    report(client, fleet["near"], -1.9400, 30.0619)
    report(client, fleet["far"], -1.9000, 30.0619)
    report(client, fleet["low"], -1.9430, 30.0619)
    return fleet


@pytest.fixture
def ride_id(client, categories):
    response = client.post("/api/v1/rides/", {
        "passenger_id": "pax-42",
        "pickup": PICKUP,
        "dropoff": DROPOFF,
        "car_category": "standard",
        "payment_method": "mobile_money",
    }, format="json")
    assert response.status_code == 201
    return response.json()["id"]


# --- Fares ---

def test_fare_estimate(client, categories):
    response = client.post("/api/v1/fares/estimate/", {
        "pickup": PICKUP, "dropoff": [DROPOFF["lat"], DROPOFF["lng"]], "car_category": "standard",
    }, format="json")

    body = response.json()
    assert response.status_code == 200
    assert 5.3 < body["distance_km"] < 5.8
    assert body["estimated_fare"] == pytest.approx(2000 + body["distance_km"] * 600 * 4, abs=15)


@pytest.mark.parametrize("payload", [
    {"pickup": PICKUP, "dropoff": DROPOFF, "car_category": "xl"},
    {"pickup": PICKUP, "dropoff": DROPOFF, "car_category": "rocket"},
    {"pickup": {"lat": 95, "lng": 30}, "dropoff": DROPOFF, "car_category": "standard"},
    {"pickup": "kigali", "dropoff": DROPOFF, "car_category": "standard"},
])
def test_fare_estimate_rejects_bad_input(client, categories, payload):
    assert client.post("/api/v1/fares/estimate/", payload, format="json").status_code == 400


# --- Rides ---

def test_create_ride(client, ride_id):
    body = client.get(f"/api/v1/rides/{ride_id}/").json()

    assert body["status"] == "pending"
    assert body["driver"] is None
    assert body["payment_method"] == "mobile_money"
    assert float(body["estimated_fare"]) > 3000


def test_create_ride_reports_scheduling(client, categories):
    response = client.post("/api/v1/rides/", {
        "pickup": PICKUP, "dropoff": DROPOFF, "car_category": "standard",
    }, format="json")
    assert response.json()["auto_dispatch_scheduled"] is False


@pytest.mark.parametrize("payload", [
    {"pickup": PICKUP, "dropoff": DROPOFF, "car_category": "standard", "payment_method": "iou"},
    {"pickup": PICKUP, "dropoff": {"lat": -1.97, "lng": 200}, "car_category": "standard"},
    {"pickup": PICKUP, "dropoff": DROPOFF, "car_category": "rocket"},
])
def test_create_ride_validation(client, categories, payload):
    from rides_api.models import Ride
    assert client.post("/api/v1/rides/", payload, format="json").status_code == 400
    assert not Ride.objects.exists()


@pytest.mark.parametrize("ride", [str(uuid.uuid4()), "not-a-uuid"])
def test_unknown_ride_is_404(client, ride):
    assert client.get(f"/api/v1/rides/{ride}/").status_code == 404
    assert client.post(f"/api/v1/rides/{ride}/dispatch/", {}, format="json").status_code == 404


# --- Dispatch ---

def test_manual_dispatch_assigns_nearest_good_driver(client, on_duty, ride_id):
    from rides_api.models import Driver, Ride

    response = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json")
    body = response.json()

    assert response.status_code == 200
    assert body["result"] == "assigned"
    assert body["driver"]["id"] == str(on_duty["near"].id)

    ride = Ride.objects.get(pk=ride_id)
    assert ride.status == Ride.Status.ACCEPTED
    assert ride.driver_id == on_duty["near"].id
    assert ride.accepted_at is not None
    assert Driver.objects.get(pk=on_duty["near"].id).status == Driver.Status.ON_TRIP

    polled = client.get(f"/api/v1/rides/{ride_id}/").json()
    assert polled["driver"]["name"] == "Near Nadia"


def test_repeated_dispatch_is_idempotent(client, on_duty, ride_id):
    client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json")
    body = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json").json()

    assert body["result"] == "already_resolved"
    assert body["ride_status"] == "accepted"


def test_dispatch_with_preferred_driver(client, on_duty, ride_id):
    body = client.post(f"/api/v1/rides/{ride_id}/dispatch/",
                       {"preferred_driver_id": str(on_duty["far"].id)}, format="json").json()
    assert body["driver"]["id"] == str(on_duty["far"].id)


def test_dispatch_without_drivers(client, fleet, ride_id):
    body = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json").json()

    assert body["result"] == "no_drivers_available"
    assert body["radius_km"] == 10.0
    assert body["min_rating"] == 3.5


def test_system_settings_change_matching(client, on_duty, ride_id):
    from rides_api.models import SystemSetting
    SystemSetting.objects.create(key="min_driver_rating", value=4.85)

    body = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json").json()
    assert body["driver"]["id"] == str(on_duty["far"].id)


def test_store_outage_is_503(client, on_duty, ride_id, services, monkeypatch):
    def unavailable(driver_ids):
        raise StoreUnavailableError("database is locked")

    monkeypatch.setattr(services.repository, "get_drivers", unavailable)
    response = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json")

    assert response.status_code == 503
    assert response.json()["retryable"] is True



class BrokenSettings:
    class objects:
        @staticmethod
        def values_list(*fields):
            raise DatabaseError("no such table: rides_api_systemsetting")


def test_unreadable_settings_are_503(client, on_duty, ride_id, monkeypatch):
    monkeypatch.setattr("rides_api.services.SystemSetting", BrokenSettings)

    response = client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json")
    assert response.status_code == 503
    assert response.json()["retryable"] is True

    preview = client.post("/api/v1/matching/", {"pickup": PICKUP}, format="json")
    assert preview.status_code == 503


# --- Drivers ---

def test_location_report_puts_driver_on_duty(client, fleet, services):
    from rides_api.models import Driver

    response = report(client, fleet["near"], -1.94, 30.06, heading=180, speed=9.2)

    assert response.status_code == 202
    assert response.json()["accepted"] is True
    assert Driver.objects.get(pk=fleet["near"].id).status == Driver.Status.AVAILABLE
    assert services.location_store.get(str(fleet["near"].id)).heading == 180


@pytest.mark.parametrize("payload", [
    {"lat": 91, "lng": 30},
    {"lat": -1.94, "lng": 30.06, "heading": 400},
    {"lat": "north", "lng": 30.06},
    {"lng": 30.06},
])
def test_bad_location_report_is_still_202(client, fleet, services, payload):
    response = client.post(f"/api/v1/drivers/{fleet['near'].id}/location/", payload, format="json")

    assert response.status_code == 202
    assert response.json()["accepted"] is False
    assert services.location_store.get(str(fleet["near"].id)) is None


def test_location_from_unknown_driver_is_accepted(client, services):
    response = client.post("/api/v1/drivers/unregistered/location/", {"lat": -1.94, "lng": 30.06}, format="json")
    assert response.status_code == 202


def test_status_toggle(client, fleet):
    response = client.post(f"/api/v1/drivers/{fleet['near'].id}/status/", {"status": "available"}, format="json")
    assert response.status_code == 200
    assert response.json()["status"] == "available"

    response = client.post(f"/api/v1/drivers/{fleet['near'].id}/status/", {"status": "offline"}, format="json")
    assert response.json()["status"] == "offline"


def test_status_toggle_during_trip_is_409(client, on_duty, ride_id):
    client.post(f"/api/v1/rides/{ride_id}/dispatch/", {}, format="json")
    response = client.post(f"/api/v1/drivers/{on_duty['near'].id}/status/", {"status": "offline"}, format="json")
    assert response.status_code == 409


def test_status_toggle_unknown_driver_is_404(client):
    response = client.post(f"/api/v1/drivers/{uuid.uuid4()}/status/", {"status": "available"}, format="json")
    assert response.status_code == 404


def test_status_toggle_rejects_on_trip(client, fleet):
    response = client.post(f"/api/v1/drivers/{fleet['near'].id}/status/", {"status": "on_trip"}, format="json")
    assert response.status_code == 400


# --- Matching preview ---

def test_smart_matching_preview(client, on_duty):
    response = client.post("/api/v1/matching/", {"pickup": PICKUP}, format="json")
    body = response.json()

    assert response.status_code == 200
    assert [d["driver_id"] for d in body["drivers"]] == [str(on_duty["near"].id), str(on_duty["far"].id)]
    assert body["total_found"] == 2
    assert body["best_match"]["driver_id"] == str(on_duty["near"].id)


def test_smart_matching_overrides(client, on_duty):
    body = client.post("/api/v1/matching/", {
        "pickup": PICKUP, "min_rating": 0, "max_distance_km": 1, "preferred_driver_id": str(on_duty["low"].id),
    }, format="json").json()

    assert body["total_found"] == 2
    assert body["best_match"]["driver_id"] == str(on_duty["low"].id)
    assert body["best_match"]["is_preferred"] is True


# --- ORM repository ---

@pytest.fixture
def orm_repository():
    from rides_api.repositories import DjangoRideRepository
    return DjangoRideRepository()


def test_orm_assignment_is_conditional(orm_repository, fleet, ride_id):
    near, far = str(fleet["near"].id), str(fleet["far"].id)

    # offline driver, nothing changes
    assert orm_repository.assign_driver(ride_id, near) == AssignmentResult.DRIVER_UNAVAILABLE
    assert orm_repository.get_ride(ride_id).status == RideStatus.PENDING
    assert orm_repository.get_ride(ride_id).driver_id is None

    orm_repository.set_driver_status(near, DriverStatus.AVAILABLE)
    orm_repository.set_driver_status(far, DriverStatus.AVAILABLE)
    assert orm_repository.assign_driver(ride_id, near) == AssignmentResult.ASSIGNED
    assert orm_repository.assign_driver(ride_id, far) == AssignmentResult.RIDE_NOT_PENDING
    assert orm_repository.get_driver(far).status == DriverStatus.AVAILABLE

    with pytest.raises(RideNotFoundError):
        orm_repository.assign_driver(str(uuid.uuid4()), far)


def test_orm_trip_lifecycle(orm_repository, fleet, ride_id):
    near = str(fleet["near"].id)
    orm_repository.set_driver_status(near, DriverStatus.AVAILABLE)
    orm_repository.assign_driver(ride_id, near)

    orm_repository.start_ride(ride_id)
    ride = orm_repository.complete_ride(ride_id)

    driver = orm_repository.get_driver(near)
    assert ride.status == RideStatus.COMPLETED
    assert driver.status == DriverStatus.AVAILABLE
    assert driver.total_trips == 301


def test_orm_presence_updates(orm_repository, fleet):
    ids = [str(d.id) for d in fleet.values()] + ["not-a-uuid"]

    assert sorted(orm_repository.mark_drivers_active(ids)) == sorted(ids[:3])
    assert orm_repository.mark_drivers_active(ids) == []
    assert len(orm_repository.mark_drivers_inactive(ids[:1])) == 1
    assert orm_repository.get_driver(ids[0]).status == DriverStatus.INACTIVE
    assert set(orm_repository.get_drivers(ids)) == set(ids[:3])
