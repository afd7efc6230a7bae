"""
Purpose: Domain models for the Rides capability.
What it does:
- Defines core data structures:
- Ride (id, passenger, pickup/dropoff coords + addresses, status, driver, fare, timestamps)
- CarCategory (rate table used by the fare estimator)

Defines enums/constants:
- RideStatus = pending | accepted | in_progress | completed | cancelled
- PaymentMethod = cash | mobile_money | card

Rule: No dispatch logic, no fare math. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid

from routing.geo import LatLon


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    CARD = "card"


@dataclass(frozen=True)
class CarCategory:
    """
    Immutable rate table for one class of vehicle.

    fare = base_fare + distance_km * price_per_km * capacity, floored at minimum_fare
    """
    id: str
    name: str
    base_fare: float
    price_per_km: float
    minimum_fare: float
    capacity: int = 4


@dataclass
class Ride:
    """
    A single passenger trip request tracked through its lifecycle.
    Only the dispatcher and the trip collaborators (start/complete/cancel)
    move it between statuses.
    """
    id: str
    passenger_id: Optional[str]
    pickup: LatLon
    dropoff: LatLon
    car_category_id: str
    payment_method: PaymentMethod = PaymentMethod.CASH

    pickup_address: str = ""
    dropoff_address: str = ""

    status: RideStatus = RideStatus.PENDING
    driver_id: Optional[str] = None

    estimated_fare: Optional[float] = None
    distance_km: Optional[float] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    accepted_at: Optional[datetime] = None

    @staticmethod  # Factory method to create a pending ride with a fresh uuid
    def new(
        pickup: LatLon,
        dropoff: LatLon,
        car_category_id: str,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        passenger_id: Optional[str] = None,
        **kwargs,
    ) -> Ride:
        return Ride(
            id=str(uuid.uuid4()),
            passenger_id=passenger_id,
            pickup=pickup,
            dropoff=dropoff,
            car_category_id=car_category_id,
            payment_method=payment_method,
            **kwargs,
        )

    @property
    def is_assignable(self) -> bool:
        return self.status == RideStatus.PENDING
