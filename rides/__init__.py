"""
Rides domain package.

Public API:
- Domain models: Ride, RideStatus, CarCategory, PaymentMethod
- Fare estimator: estimate_fare, FareEstimate, CarCategoryCatalog
- Booking entry: create_ride
"""
from .models import Ride, RideStatus, CarCategory, PaymentMethod
from .fares import (
    CarCategoryCatalog,
    FareEstimate,
    InvalidCarCategoryError,
    UnknownCarCategoryError,
    default_catalog,
    estimate_fare,
)
from .booking import InvalidPaymentMethodError, create_ride

__all__ = ["Ride",
           "RideStatus",
           "CarCategory",
           "PaymentMethod",
           "CarCategoryCatalog",
           "FareEstimate",
           "InvalidCarCategoryError",
           "UnknownCarCategoryError",
           "default_catalog",
           "estimate_fare",
           "InvalidPaymentMethodError",
           "create_ride",
           ]
