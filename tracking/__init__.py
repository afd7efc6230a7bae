#Live driver positions: the Location Store, the pub/sub broadcaster and the
#ingestion service drivers report through. No dispatch logic.

from .models import DriverLocationRecord, LocationEvent, LocationEventKind
from .store import LocationStore, DEFAULT_STALENESS_WINDOW_SECONDS
from .broadcast import LOCATION_TOPIC, LocationBroadcaster, Subscription
from .ingestion import InvalidLocationReportError, LocationIngestion

__all__ = [
    "DriverLocationRecord",
    "LocationEvent",
    "LocationEventKind",
    "LocationStore",
    "DEFAULT_STALENESS_WINDOW_SECONDS",
    "LOCATION_TOPIC",
    "LocationBroadcaster",
    "Subscription",
    "InvalidLocationReportError",
    "LocationIngestion",
]
