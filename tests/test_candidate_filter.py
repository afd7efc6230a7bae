from datetime import timedelta

import pytest

from dispatch.candidate_filter import find_candidates
from drivers.models import DriverProfile, DriverStatus
from drivers.selection import filter_eligible_drivers
from routing.eta_service import HaversineEtaEstimator
from tracking.ingestion import LocationIngestion
from tracking.models import DriverLocationRecord
from conftest import PICKUP, offset


def search(location_store, repository, now, **kwargs):
    params = dict(max_distance_km=10.0, min_rating=3.5, limit=10, now=now)
    params.update(kwargs)
    return find_candidates(PICKUP, location_store=location_store, driver_repository=repository, **params)


def test_hard_rules_filter_and_closest_first(location_store, repository, reporting_drivers, now):
    candidates = search(location_store, repository, now)

    # dave is under the rating floor, erin is offline
    assert [c.driver_id for c in candidates] == ["drv-alice", "drv-bob", "drv-carol"]
    assert candidates[0].distance_km == pytest.approx(0.5, abs=0.01)
    assert all(c.distance_km <= 10.0 for c in candidates)


def test_eta_uses_average_speed(location_store, repository, reporting_drivers, now):
    candidates = search(location_store, repository, now, eta_estimator=HaversineEtaEstimator(30.0))
    for candidate in candidates:
        assert candidate.eta_minutes == pytest.approx(candidate.distance_km * 2.0)


def test_radius_is_enforced(location_store, repository, reporting_drivers, now):
    candidates = search(location_store, repository, now, max_distance_km=2.0)
    assert [c.driver_id for c in candidates] == ["drv-alice", "drv-bob"]


def test_limit_keeps_the_closest(location_store, repository, reporting_drivers, now):
    candidates = search(location_store, repository, now, limit=1)
    assert [c.driver_id for c in candidates] == ["drv-alice"]


def test_min_rating_zero_lets_everyone_available_in(location_store, repository, reporting_drivers, now):
    candidates = search(location_store, repository, now, min_rating=0.0)
    assert [c.driver_id for c in candidates] == ["drv-alice", "drv-dave", "drv-bob", "drv-carol"]


def test_stale_location_excludes_driver(location_store, repository, reporting_drivers, now):
    # 31s later alice has not reported again, the others did
    later = now + timedelta(seconds=31)
    for driver_id in ("drv-bob", "drv-carol"):
        location_store.upsert(DriverLocationRecord(driver_id, reporting_drivers[driver_id], later))

    candidates = search(location_store, repository, later)
    assert [c.driver_id for c in candidates] == ["drv-bob", "drv-carol"]


def test_driver_at_the_staleness_edge_is_still_a_candidate(location_store, repository, reporting_drivers, now):
    at_edge = now + timedelta(seconds=30)
    assert "drv-alice" in [c.driver_id for c in search(location_store, repository, at_edge)]

    just_past = now + timedelta(seconds=30, milliseconds=1)
    assert search(location_store, repository, just_past) == []


def test_fast_device_clock_does_not_keep_driver_visible(location_store, repository, now):
    ingestion = LocationIngestion(location_store)
    ingestion.report_location("drv-alice", offset(PICKUP, d_lat=0.0045),
                              timestamp=now + timedelta(hours=1), received_at=now)

    assert search(location_store, repository, now + timedelta(minutes=30)) == []


def test_unknown_driver_is_ignored(location_store, repository, reporting_drivers, now):
    location_store.upsert(DriverLocationRecord("ghost", offset(PICKUP, d_lat=0.0001), now))

    candidates = search(location_store, repository, now)
    assert "ghost" not in [c.driver_id for c in candidates]


def test_no_candidates_when_store_is_empty(location_store, repository, now):
    assert search(location_store, repository, now) == []


def test_equal_distances_are_ordered_by_driver_id(location_store, repository, now):

    spot = offset(PICKUP, d_lat=0.001)
    for driver_id in ("z-driver", "a-driver"):
        repository.add_driver(DriverProfile.new(driver_id, driver_id, rating=4.5, status=DriverStatus.AVAILABLE))
        location_store.upsert(DriverLocationRecord(driver_id, spot, now))

    candidates = search(location_store, repository, now)
    assert [c.driver_id for c in candidates] == ["a-driver", "z-driver"]


def test_filter_eligible_drivers(drivers):
    eligible = filter_eligible_drivers(drivers, min_rating=4.0)
    assert [d.id for d in eligible] == ["drv-alice", "drv-bob"]
