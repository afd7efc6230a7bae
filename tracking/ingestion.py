"""
Purpose: Location Ingestion & Broadcast.
What it does:
- Accepts frequent position reports from driver devices (every ~5 s or ~10 m).
- Validates them, upserts the LocationStore and republishes the change.
- Runs the staleness sweep (records go inactive after 30 s of silence).
- Takes drivers off the map when they go offline.
- Hands out subscriptions for the passenger tracking view.

Reporting is fire-and-forget for the device: a bad report is logged and
dropped, it never raises back to the driver.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional

from rides.models import utcnow
from routing.geo import InvalidCoordinateError, LatLon, validate_coordinate
from .broadcast import DEFAULT_MAX_PENDING, LOCATION_TOPIC, LocationBroadcaster, Subscription
from .models import DriverLocationRecord, LocationEvent, LocationEventKind
from .store import LocationStore

logger = logging.getLogger(__name__)


class InvalidLocationReportError(ValueError):
    pass


def _optional_reading(name: str, value, *, minimum: float = 0.0, maximum: Optional[float] = None) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidLocationReportError(f"{name} must be numeric, got {value!r}")
    if not math.isfinite(value) or value < minimum or (maximum is not None and value >= maximum):
        raise InvalidLocationReportError(f"{name} out of range: {value}")
    return value


def _aware(name: str, value) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise InvalidLocationReportError(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidLocationReportError(f"{name} must be timezone-aware, got {value.isoformat()}")
    return value


class LocationIngestion:
    """
    driver_repository is optional. When attached, reports put offline/inactive
    drivers back to available and the sweep marks silent drivers inactive.
    """
    def __init__(self, store: LocationStore, broadcaster: Optional[LocationBroadcaster] = None,
                 driver_repository=None, topic: str = LOCATION_TOPIC):
        self.store = store
        self.broadcaster = broadcaster or LocationBroadcaster()
        self.driver_repository = driver_repository
        self.topic = topic

    # --- Public API ---

    def report_location(
        self,
        driver_id: str,
        coordinate: LatLon,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
        accuracy: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        received_at: Optional[datetime] = None,
    ) -> Optional[DriverLocationRecord]:
        """
        Returns the stored record, or None when the report was dropped.

        timestamp is the device's clock and must be timezone-aware. It is
        capped at received_at (arrival time, defaults to now), so a device
        clock running ahead never keeps a driver fresh for longer.
        """
        try:
            record = self._build_record(driver_id, coordinate, heading, speed, accuracy, timestamp, received_at)
        except (InvalidCoordinateError, InvalidLocationReportError) as exc:
            logger.warning("Dropped location report from driver %s: %s", driver_id, exc)
            return None

        record = self.store.upsert(record, on_stored=self._on_upsert)

        if self.driver_repository is not None:
            # sharing location means the driver is on duty again
            for changed in self.driver_repository.mark_drivers_active([driver_id]):
                logger.info("Driver %s back to available after location report", changed)

        return record

    def sweep_stale(self, now: Optional[datetime] = None) -> List[str]:
        """
        Background job: deactivate records past the staleness window.
        Returns the driver ids whose records were deactivated.
        """
        deactivated = self.store.deactivate_stale(now, on_deactivated=self._on_deactivated)

        driver_ids = [record.driver_id for record in deactivated]
        if driver_ids and self.driver_repository is not None:
            inactive = self.driver_repository.mark_drivers_inactive(driver_ids)
            if inactive:
                logger.info("Marked %d silent driver(s) inactive", len(inactive))
        return driver_ids

    def go_offline(self, driver_id: str) -> Optional[DriverLocationRecord]:
        """
        Driver switched off. Raises DriverStateException while they are on a trip.
        """
        if self.driver_repository is not None and self.driver_repository.get_driver(driver_id) is not None:
            self.driver_repository.mark_driver_offline(driver_id)

        return self.store.remove(driver_id, on_removed=self._on_removed)

    def subscribe_locations(self, driver_ids: Optional[Iterable[str]] = None,
                            max_pending: int = DEFAULT_MAX_PENDING) -> Subscription:
        """
        Stream of LocationEvents, optionally only for the given drivers
        (e.g. the driver assigned to a passenger's ride).
        """
        predicate = None
        if driver_ids is not None:
            wanted = frozenset(driver_ids)
            predicate = lambda event: event.driver_id in wanted
        return self.broadcaster.subscribe(self.topic, predicate=predicate, max_pending=max_pending)

    def active_locations(self, now: Optional[datetime] = None) -> List[DriverLocationRecord]:
        return self.store.active_locations(now)

    # --- helpers ---

    def _build_record(self, driver_id, coordinate, heading, speed, accuracy,
                      timestamp, received_at) -> DriverLocationRecord:
        if not driver_id:
            raise InvalidLocationReportError("driver_id is required")

        received_at = _aware("received_at", received_at) or utcnow()
        timestamp = _aware("timestamp", timestamp) or received_at

        return DriverLocationRecord(
            driver_id=str(driver_id),
            location=validate_coordinate(coordinate),
            timestamp=min(timestamp, received_at),
            heading=_optional_reading("heading", heading, maximum=360.0),
            speed=_optional_reading("speed", speed),
            accuracy=_optional_reading("accuracy", accuracy),
            active=True,
        )

    # Called by the store while it holds its write lock, so subscribers see
    # events in the same order as the store applied them.

    def _on_upsert(self, record: DriverLocationRecord) -> None:
        self._publish(LocationEventKind.UPSERT, record)

    def _on_deactivated(self, record: DriverLocationRecord) -> None:
        self._publish(LocationEventKind.DEACTIVATED, record)

    def _on_removed(self, record: DriverLocationRecord) -> None:
        self._publish(LocationEventKind.REMOVED, record)

    def _publish(self, kind: LocationEventKind, record: DriverLocationRecord) -> None:
        self.broadcaster.publish(self.topic, LocationEvent(kind=kind, record=record))
