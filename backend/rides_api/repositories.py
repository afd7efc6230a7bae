"""
Purpose: Django ORM implementation of the dispatch repository contract.
What it does:
Same methods as dispatch.repository.InMemoryRideRepository, backed by the
database. The assignment is a pair of conditional UPDATEs inside one
transaction:

    UPDATE ride   SET status='accepted', driver=... WHERE id=... AND status='pending'
    UPDATE driver SET status='on_trip'            WHERE id=... AND status='available'

If either matches zero rows the transaction is rolled back and nothing
changes. Database failures surface as StoreUnavailableError (retryable).
"""

import functools
import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from dispatch.repository import (
    AssignmentResult,
    DriverNotFoundError,
    RideNotFoundError,
    StoreUnavailableError,
)
from dispatch.state_machines.driver_state import (
    handle_manual_status_change,
    handle_went_offline,
)
from dispatch.state_machines.ride_state import transition_ride
from drivers.models import DriverProfile, DriverStatus
from rides.models import Ride as RideData, RideStatus

from .models import Driver, Ride

logger = logging.getLogger(__name__)


def store_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.error("Database error in %s: %s", func.__name__, exc)
            raise StoreUnavailableError(str(exc)) from exc
    return wrapper


def _valid_ids(ids: Iterable[str]) -> List[uuid.UUID]:
    # location reports can come from ids the registry has never seen
    valid = []
    for value in ids:
        try:
            valid.append(uuid.UUID(str(value)))
        except ValueError:
            continue
    return valid


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    ids = _valid_ids([value])
    return ids[0] if ids else None


class DjangoRideRepository:

    # --- Rides ---

    @store_errors
    def add_ride(self, ride: RideData) -> RideData:
        row, _ = Ride.objects.get_or_create(
            id=ride.id,
            defaults=dict(
                passenger_id=ride.passenger_id,
                pickup_lat=ride.pickup[0],
                pickup_lng=ride.pickup[1],
                pickup_address=ride.pickup_address,
                dropoff_lat=ride.dropoff[0],
                dropoff_lng=ride.dropoff[1],
                dropoff_address=ride.dropoff_address,
                status=ride.status.value,
                category_id=ride.car_category_id,
                payment_method=ride.payment_method.value,
                estimated_fare=round(ride.estimated_fare, 2) if ride.estimated_fare is not None else None,
                distance_km=ride.distance_km,
                created_at=ride.created_at,
                updated_at=ride.updated_at,
            ),
        )
        return row.to_domain()

    @store_errors
    def get_ride(self, ride_id: str) -> Optional[RideData]:
        pk = _as_uuid(ride_id)
        if pk is None:
            return None
        row = Ride.objects.filter(pk=pk).first()
        return row.to_domain() if row else None

    @store_errors
    def list_rides(self, status: Optional[RideStatus] = None) -> List[RideData]:
        queryset = Ride.objects.all().order_by('created_at')
        if status is not None:
            queryset = queryset.filter(status=status.value)
        return [row.to_domain() for row in queryset]

    # --- Drivers ---

    @store_errors
    def add_driver(self, driver: DriverProfile) -> DriverProfile:
        row, _ = Driver.objects.update_or_create(
            id=driver.id,
            defaults=dict(
                name=driver.name,
                rating=driver.rating,
                total_trips=driver.total_trips,
                status=driver.status.value,
                car_model=driver.vehicle.model,
                car_plate=driver.vehicle.plate,
                category_id=driver.vehicle.category_id,
            ),
        )
        return row.to_domain()

    @store_errors
    def get_driver(self, driver_id: str) -> Optional[DriverProfile]:
        pk = _as_uuid(driver_id)
        if pk is None:
            return None
        row = Driver.objects.filter(pk=pk).first()
        return row.to_domain() if row else None

    @store_errors
    def get_drivers(self, driver_ids: Iterable[str]) -> Dict[str, DriverProfile]:
        rows = Driver.objects.filter(pk__in=_valid_ids(driver_ids))
        return {str(row.id): row.to_domain() for row in rows}

    # --- The atomic conditional write ---

    @store_errors
    def assign_driver(self, ride_id: str, driver_id: str, now: Optional[datetime] = None) -> AssignmentResult:
        now = now or timezone.now()
        ride_pk = _as_uuid(ride_id)
        driver_pk = _as_uuid(driver_id)
        if ride_pk is None:
            raise RideNotFoundError(f"Ride {ride_id} not found")

        with transaction.atomic():
            rides_updated = Ride.objects.filter(pk=ride_pk, status=Ride.Status.PENDING).update(
                status=Ride.Status.ACCEPTED,
                driver_id=driver_pk,
                accepted_at=now,
                updated_at=now,
            )
            if rides_updated == 0:
                if not Ride.objects.filter(pk=ride_pk).exists():
                    raise RideNotFoundError(f"Ride {ride_id} not found")
                return AssignmentResult.RIDE_NOT_PENDING

            drivers_updated = 0
            if driver_pk is not None:
                drivers_updated = Driver.objects.filter(pk=driver_pk, status=Driver.Status.AVAILABLE).update(
                    status=Driver.Status.ON_TRIP,
                    updated_at=now,
                )
            if drivers_updated == 0:
                # undo the ride update, the ride stays pending
                transaction.set_rollback(True)
                return AssignmentResult.DRIVER_UNAVAILABLE

        return AssignmentResult.ASSIGNED

    # --- Trip collaborators ---

    def start_ride(self, ride_id: str, now: Optional[datetime] = None) -> RideData:
        return self._transition(ride_id, RideStatus.IN_PROGRESS, now)

    def complete_ride(self, ride_id: str, now: Optional[datetime] = None) -> RideData:
        return self._transition(ride_id, RideStatus.COMPLETED, now, release=True, completed=True)

    def cancel_ride(self, ride_id: str, now: Optional[datetime] = None) -> RideData:
        return self._transition(ride_id, RideStatus.CANCELLED, now, release=True, completed=False)

    @store_errors
    def _transition(self, ride_id: str, target: RideStatus, now: Optional[datetime],
                    release: bool = False, completed: bool = False) -> RideData:
        now = now or timezone.now()
        pk = _as_uuid(ride_id)
        with transaction.atomic():
            row = Ride.objects.select_for_update().filter(pk=pk).first() if pk else None
            if row is None:
                raise RideNotFoundError(f"Ride {ride_id} not found")

            ride = transition_ride(row.to_domain(), target, now)
            row.status = ride.status.value
            row.updated_at = ride.updated_at
            row.save(update_fields=['status', 'updated_at'])

            if release and row.driver_id:
                changes = {'status': Driver.Status.AVAILABLE, 'updated_at': now}
                if completed:
                    changes['total_trips'] = F('total_trips') + 1
                Driver.objects.filter(pk=row.driver_id, status=Driver.Status.ON_TRIP).update(**changes)
        return ride

    # --- Driver availability ---

    @store_errors
    def set_driver_status(self, driver_id: str, status: DriverStatus) -> DriverProfile:
        return self._update_driver(driver_id, lambda driver: handle_manual_status_change(driver, status))

    @store_errors
    def mark_driver_offline(self, driver_id: str) -> DriverProfile:
        return self._update_driver(driver_id, handle_went_offline)

    @store_errors
    def mark_drivers_active(self, driver_ids: Iterable[str]) -> List[str]:
        return self._conditional_bulk(
            driver_ids,
            from_statuses=[Driver.Status.OFFLINE, Driver.Status.INACTIVE],
            to_status=Driver.Status.AVAILABLE,
        )

    @store_errors
    def mark_drivers_inactive(self, driver_ids: Iterable[str]) -> List[str]:
        return self._conditional_bulk(
            driver_ids,
            from_statuses=[Driver.Status.AVAILABLE],
            to_status=Driver.Status.INACTIVE,
        )

    # --- helpers ---

    def _update_driver(self, driver_id: str, transition) -> DriverProfile:
        pk = _as_uuid(driver_id)
        with transaction.atomic():
            row = Driver.objects.select_for_update().filter(pk=pk).first() if pk else None
            if row is None:
                raise DriverNotFoundError(f"Driver {driver_id} not found")

            updated = transition(row.to_domain())
            if updated.status.value != row.status:
                row.status = updated.status.value
                row.updated_at = timezone.now()
                row.save(update_fields=['status', 'updated_at'])
        return updated

    def _conditional_bulk(self, driver_ids: Iterable[str], from_statuses, to_status) -> List[str]:
        with transaction.atomic():
            matching = Driver.objects.select_for_update().filter(
                pk__in=_valid_ids(driver_ids), status__in=from_statuses,
            )
            changed = [str(pk) for pk in matching.values_list('pk', flat=True)]
            if changed:
                Driver.objects.filter(pk__in=changed, status__in=from_statuses).update(
                    status=to_status, updated_at=timezone.now(),
                )
        return changed
