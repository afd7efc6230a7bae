"""
Purpose: Data models for live driver positions.
What it does:
- DriverLocationRecord: the single latest position of one driver (no history).
- LocationEvent: what the broadcaster pushes to subscribers when a record changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from routing.geo import LatLon


@dataclass(frozen=True)
class DriverLocationRecord:
    driver_id: str
    location: LatLon
    timestamp: datetime
    heading: Optional[float] = None  # degrees clockwise from north, [0, 360)
    speed: Optional[float] = None  # m/s as reported by the device
    accuracy: Optional[float] = None  # metres
    active: bool = True

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()

    def is_fresh(self, now: datetime, staleness_window_seconds: float) -> bool:
        # a position reported after `now` is not known at `now`
        return self.active and 0 <= self.age_seconds(now) <= staleness_window_seconds


class LocationEventKind(str, Enum):
    UPSERT = "upsert"
    DEACTIVATED = "deactivated"
    REMOVED = "removed"


@dataclass(frozen=True)
class LocationEvent:
    kind: LocationEventKind
    record: DriverLocationRecord

    @property
    def driver_id(self) -> str:
        return self.record.driver_id
