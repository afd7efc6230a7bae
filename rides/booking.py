"""
Purpose: The booking flow's entry point into the dispatch core.
What it does:
Validates a passenger's request, prices it with the fare estimator and stores
a PENDING ride. Creating the ride is what triggers auto-dispatch; the caller
hands the returned ride to an AutoDispatchScheduler.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from routing.geo import LatLon, validate_coordinate
from .fares import CarCategoryCatalog, estimate_fare
from .models import PaymentMethod, Ride, RideStatus, utcnow

logger = logging.getLogger(__name__)


class InvalidPaymentMethodError(ValueError):
    pass


def parse_payment_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(value)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise InvalidPaymentMethodError(f"Unknown payment method {value!r}, expected one of: {allowed}")


def create_ride(
    repository,
    catalog: CarCategoryCatalog,
    *,
    pickup: LatLon,
    dropoff: LatLon,
    category_id: str,
    payment_method=PaymentMethod.CASH,
    passenger_id: Optional[str] = None,
    pickup_address: str = "",
    dropoff_address: str = "",
    now: Optional[datetime] = None,
) -> Ride:
    """
    Raises InvalidCoordinateError, UnknownCarCategoryError or
    InvalidPaymentMethodError; nothing is stored in that case.
    """
    now = now or utcnow()

    pickup = validate_coordinate(pickup)
    dropoff = validate_coordinate(dropoff)
    category = catalog.get(category_id)
    method = parse_payment_method(payment_method)

    quote = estimate_fare(pickup, dropoff, category)

    ride = Ride.new(
        pickup=pickup,
        dropoff=dropoff,
        car_category_id=category.id,
        payment_method=method,
        passenger_id=passenger_id,
        pickup_address=pickup_address,
        dropoff_address=dropoff_address,
        status=RideStatus.PENDING,
        estimated_fare=quote.fare,
        distance_km=quote.distance_km,
        created_at=now,
        updated_at=now,
    )

    stored = repository.add_ride(ride)
    logger.info(
        "Ride %s created: %.2f km, fare %.0f (%s)",
        stored.id, quote.distance_km, quote.fare, category.id,
    )
    return stored
