"""
Purpose: Hard eligibility rules for offering a ride to a driver.
What it does:
Accepts driver profiles and drops the ones that must never be offered a ride:
not available (offline, on a trip, gone quiet) or rated below the floor.
Distance and ranking live in dispatch/.
"""

from typing import Iterable, List

from .models import DriverProfile, DriverStatus


def is_eligible(driver: DriverProfile, min_rating: float) -> bool:
    if driver.status != DriverStatus.AVAILABLE:
        return False

    if driver.rating < min_rating:
        return False

    return True


def filter_eligible_drivers(drivers: Iterable[DriverProfile], min_rating: float = 0.0) -> List[DriverProfile]:
    """
    Returns only drivers who are available and meet the rating floor.
    """
    eligible = []

    for driver in drivers:
        if not is_eligible(driver, min_rating):
            continue

        eligible.append(driver)

    return eligible
