"""
Purpose: The Location Store, the single shared mutable resource of dispatch.
What it does:
- Holds exactly one DriverLocationRecord per broadcasting driver.
- Last write wins, keyed by arrival order at the store.
- Reads are point-in-time snapshots; staleness is applied lazily on read
  and eagerly by the background sweep (deactivate_stale).

Rule: Only LocationIngestion writes here. Everyone else reads snapshots.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from rides.models import utcnow
from .models import DriverLocationRecord

# Reports older than this are invisible to matching.
DEFAULT_STALENESS_WINDOW_SECONDS = 30.0

RecordListener = Callable[[DriverLocationRecord], None]


class LocationStore:
    """
    In-memory, thread-safe latest-position cache.
    Location records are ephemeral: they are rebuilt from the report stream.
    """
    def __init__(self, staleness_window_seconds: float = DEFAULT_STALENESS_WINDOW_SECONDS):
        if staleness_window_seconds <= 0:
            raise ValueError("staleness_window_seconds must be > 0")
        self.staleness_window_seconds = staleness_window_seconds
        self._lock = threading.RLock()
        self._records: Dict[str, DriverLocationRecord] = {}

    # --- writes ---
    # Each write takes an optional listener that runs under the write lock,
    # so whatever it publishes follows the store's own write order.

    def upsert(self, record: DriverLocationRecord,
               on_stored: Optional[RecordListener] = None) -> DriverLocationRecord:
        """
        Overwrite the driver's record with the newest report and mark it active.
        """
        if not record.active:
            record = replace(record, active=True)
        with self._lock:
            self._records[record.driver_id] = record
            if on_stored is not None:
                on_stored(record)
        return record

    def deactivate_stale(self, now: Optional[datetime] = None,
                         on_deactivated: Optional[RecordListener] = None) -> List[DriverLocationRecord]:
        """
        Flip active=False on every record older than the staleness window.
        Returns the records that changed (post-change).
        """
        now = now or utcnow()
        deactivated: List[DriverLocationRecord] = []
        with self._lock:
            for driver_id, record in self._records.items():
                if record.active and record.age_seconds(now) > self.staleness_window_seconds:
                    updated = replace(record, active=False)
                    self._records[driver_id] = updated
                    deactivated.append(updated)
                    if on_deactivated is not None:
                        on_deactivated(updated)
        return deactivated

    def remove(self, driver_id: str,
               on_removed: Optional[RecordListener] = None) -> Optional[DriverLocationRecord]:
        with self._lock:
            record = self._records.pop(driver_id, None)
            if record is not None and on_removed is not None:
                on_removed(record)
            return record

    # --- reads ---

    def get(self, driver_id: str) -> Optional[DriverLocationRecord]:
        with self._lock:
            return self._records.get(driver_id)

    def active_locations(self, now: Optional[datetime] = None,
                         staleness_window_seconds: Optional[float] = None) -> List[DriverLocationRecord]:
        """
        Snapshot of records that are active and fresh at `now`.
        Stale records are excluded even if the sweep has not run yet.
        """
        now = now or utcnow()
        window = staleness_window_seconds or self.staleness_window_seconds
        with self._lock:
            snapshot = list(self._records.values())
        return [record for record in snapshot if record.is_fresh(now, window)]

    def all_records(self) -> List[DriverLocationRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
