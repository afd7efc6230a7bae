import pytest
from datetime import datetime, timezone

from dispatch.repository import InMemoryRideRepository
from drivers.models import DriverProfile, DriverStatus
from drivers.policy import DispatchPolicy
from rides.booking import create_ride
from rides.fares import default_catalog
from tracking.ingestion import LocationIngestion
from tracking.store import LocationStore

# Kigali city centre
PICKUP = (-1.9441, 30.0619)
DROPOFF = (-1.9706, 30.1044)

NOW = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)


def offset(origin, d_lat=0.0, d_lon=0.0):
    return (origin[0] + d_lat, origin[1] + d_lon)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def policy():
    return DispatchPolicy(auto_dispatch_enabled=False)


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def drivers():
    return [
        DriverProfile.new("drv-alice", "Alice", rating=4.9, total_trips=800, status=DriverStatus.AVAILABLE),
        DriverProfile.new("drv-bob", "Bob", rating=4.2, total_trips=120, status=DriverStatus.AVAILABLE),
        DriverProfile.new("drv-carol", "Carol", rating=3.9, total_trips=40, status=DriverStatus.AVAILABLE),
        DriverProfile.new("drv-dave", "Dave", rating=3.0, total_trips=900, status=DriverStatus.AVAILABLE),
        DriverProfile.new("drv-erin", "Erin", rating=5.0, total_trips=300, status=DriverStatus.OFFLINE),
    ]


@pytest.fixture
def repository(drivers):
    return InMemoryRideRepository(drivers)


@pytest.fixture
def location_store():
    return LocationStore(staleness_window_seconds=30)


@pytest.fixture
def reporting_drivers(location_store, now):
    """
    Positions for the fixture drivers, roughly 0.5 / 1.5 / 3 / 1 / 0.3 km
    from PICKUP. Only the store is written, driver statuses stay untouched.
    """
    ingestion = LocationIngestion(location_store)
    positions = {
        "drv-alice": offset(PICKUP, d_lat=0.0045),
        "drv-bob": offset(PICKUP, d_lat=0.0135),
        "drv-carol": offset(PICKUP, d_lon=0.027),
        "drv-dave": offset(PICKUP, d_lon=-0.009),
        "drv-erin": offset(PICKUP, d_lat=-0.0027),
    }
    for driver_id, position in positions.items():
        ingestion.report_location(driver_id, position, timestamp=now, received_at=now)
    return positions


@pytest.fixture
def pending_ride(repository, catalog, now):
    return create_ride(
        repository, catalog,
        passenger_id="pax-1",
        pickup=PICKUP,
        dropoff=DROPOFF,
        category_id="standard",
        now=now,
    )
