from .models import DriverProfile, DriverStatus, Vehicle
from .policy import DispatchPolicy, default_dispatch_policy
from .selection import filter_eligible_drivers, is_eligible

__all__ = [
    "DriverProfile",
    "DriverStatus",
    "Vehicle",
    "DispatchPolicy",
    "default_dispatch_policy",
    "filter_eligible_drivers",
    "is_eligible",
]
