"""
Purpose: Core data models for the drivers domain.
What it does:
Defines the structure of a DriverProfile, their vehicle and their availability
status without relying on Django ORM constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DriverStatus(str, Enum):
    """
    Availability of a driver for dispatch.

    OFFLINE    - not working, not broadcasting
    AVAILABLE  - broadcasting and free to take a ride
    ON_TRIP    - assigned to a ride (set by dispatch on assignment)
    INACTIVE   - was available but stopped reporting location (staleness sweep)
    """
    OFFLINE = "offline"
    AVAILABLE = "available"
    ON_TRIP = "on_trip"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Vehicle:
    model: str = ""
    plate: str = ""
    category_id: Optional[str] = None


@dataclass(frozen=True)
class DriverProfile:
    """
    A stateless snapshot of a driver's profile.
    Repositories hand out copies; status changes go through the repository.
    """
    id: str
    name: str
    rating: float = 5.0
    total_trips: int = 0
    status: DriverStatus = DriverStatus.OFFLINE
    vehicle: Vehicle = field(default_factory=Vehicle)

    def __post_init__(self):
        if not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"Driver {self.id} rating must be within [0, 5], got {self.rating}")
        if self.total_trips < 0:
            raise ValueError(f"Driver {self.id} total_trips must be >= 0")

    @classmethod
    def new(
        cls,
        driver_id: str,
        name: str,
        rating: float = 5.0,
        total_trips: int = 0,
        status: str | DriverStatus = DriverStatus.OFFLINE,
        car_model: str = "",
        car_plate: str = "",
        category_id: Optional[str] = None,
    ) -> DriverProfile:
        if isinstance(status, str):
            status = DriverStatus(status)

        return cls(
            id=driver_id,
            name=name,
            rating=float(rating),
            total_trips=int(total_trips),
            status=status,
            vehicle=Vehicle(model=car_model, plate=car_plate, category_id=category_id),
        )

    @property
    def is_available(self) -> bool:
        return self.status == DriverStatus.AVAILABLE
