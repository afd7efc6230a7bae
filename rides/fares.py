"""
Purpose: Fare quotes for the booking flow.
What it does:
Computes trip distance and a price from two coordinates and a CarCategory.

    distance_km = haversine(pickup, dropoff)          (straight line, not road distance)
    fare        = base_fare + distance_km * price_per_km * capacity
    fare        = max(fare, minimum_fare)

Pure and deterministic, safe to call on every keystroke of a booking UI.
Also owns the car category catalog lookup used to resolve category ids.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, NamedTuple

from routing.geo import LatLon, haversine_km, validate_coordinate
from .models import CarCategory


class InvalidCarCategoryError(ValueError):
    """Raised when a rate table has negative prices or a non-positive capacity."""
    pass


class UnknownCarCategoryError(LookupError):
    pass


class FareEstimate(NamedTuple):
    distance_km: float
    fare: float


def validate_category(category: CarCategory) -> CarCategory:
    if category is None:
        raise InvalidCarCategoryError("car category is required")

    for name in ("base_fare", "price_per_km", "minimum_fare"):
        value = getattr(category, name)
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
            raise InvalidCarCategoryError(f"{category.id}: {name} must be a non-negative number, got {value!r}")

    if not isinstance(category.capacity, int) or category.capacity <= 0:
        raise InvalidCarCategoryError(f"{category.id}: capacity must be a positive integer, got {category.capacity!r}")

    return category


def estimate_fare(pickup: LatLon, dropoff: LatLon, category: CarCategory) -> FareEstimate:
    """
    Returns (distance_km, fare). Raises InvalidCoordinateError or
    InvalidCarCategoryError on bad input; never does I/O.
    """
    pickup = validate_coordinate(pickup)
    dropoff = validate_coordinate(dropoff)
    validate_category(category)

    distance_km = haversine_km(pickup, dropoff)

    fare_per_km = category.price_per_km * category.capacity
    fare = category.base_fare + distance_km * fare_per_km

    return FareEstimate(distance_km=distance_km, fare=max(fare, category.minimum_fare))


class CarCategoryCatalog:
    """
    Read-only lookup of the car categories a ride may be booked in.
    """
    def __init__(self, categories: Iterable[CarCategory] = ()):
        self._categories: Dict[str, CarCategory] = {}
        for category in categories:
            self._categories[category.id] = validate_category(category)

    def get(self, category_id: str) -> CarCategory:
        category = self._categories.get(category_id)
        if category is None:
            raise UnknownCarCategoryError(f"Unknown car category: {category_id!r}")
        return category

    def all(self) -> List[CarCategory]:
        return list(self._categories.values())

    def __contains__(self, category_id: str) -> bool:
        return category_id in self._categories


def default_catalog() -> CarCategoryCatalog:
    """
    The standard RWF rate tables shipped with the platform.
    """
    return CarCategoryCatalog([
        CarCategory("standard", "Standard 4-Seat", base_fare=2000, price_per_km=600, minimum_fare=3000, capacity=4),
        CarCategory("comfort", "Comfortable 4-Seat", base_fare=3000, price_per_km=1000, minimum_fare=4000, capacity=4),
        CarCategory("xl", "Family 7-Seat", base_fare=4000, price_per_km=800, minimum_fare=6000, capacity=7),
    ])
