"""
Process-wide wiring of the dispatch core for the API.

Location records live in process memory (they are ephemeral and rebuilt
from the next round of reports). Rides and drivers go through the ORM.
"""

import logging
import threading

from django.db import close_old_connections

from dispatch.auto_dispatch import AutoDispatchScheduler
from dispatch.dispatcher import Dispatcher
from drivers.policy import DispatchPolicy
from rides.fares import CarCategoryCatalog
from tracking.broadcast import LocationBroadcaster
from tracking.ingestion import LocationIngestion
from tracking.store import LocationStore

from .models import CarCategory, SystemSetting
from .repositories import DjangoRideRepository, store_errors

logger = logging.getLogger(__name__)


@store_errors
def current_policy() -> DispatchPolicy:
    """
    RIDEHAIL_* environment defaults overlaid with the SystemSetting table.
    Re-read on every call so admins can flip auto_dispatch without a restart.
    """
    settings = dict(SystemSetting.objects.values_list('key', 'value'))
    return DispatchPolicy.from_mapping(settings, base=DispatchPolicy.from_env())


@store_errors
def current_catalog() -> CarCategoryCatalog:
    return CarCategoryCatalog(row.to_domain() for row in CarCategory.objects.filter(is_active=True))


class DjangoAutoDispatchScheduler(AutoDispatchScheduler):
    """
    Timer threads open their own DB connections; close them after each
    attempt so they do not leak.
    """
    def _fire(self, ride_id, attempt, created_at):
        close_old_connections()
        try:
            super()._fire(ride_id, attempt, created_at)
        finally:
            close_old_connections()


class DispatchServices:
    def __init__(self):
        policy = current_policy()
        self.repository = DjangoRideRepository()
        self.location_store = LocationStore(policy.staleness_window_seconds)
        self.broadcaster = LocationBroadcaster()
        self.ingestion = LocationIngestion(self.location_store, self.broadcaster, self.repository)
        self.dispatcher = Dispatcher(self.repository, self.location_store, policy_provider=current_policy)
        self.scheduler = DjangoAutoDispatchScheduler(self.dispatcher, policy_provider=current_policy)


_services = None
_services_lock = threading.Lock()


def get_services() -> DispatchServices:
    global _services
    with _services_lock:
        if _services is None:
            _services = DispatchServices()
            logger.info("Dispatch services initialised")
        return _services


def reset_services() -> None:
    """Drop the wired services (used by tests)."""
    global _services
    with _services_lock:
        if _services is not None:
            _services.scheduler.shutdown()
        _services = None
