"""
Purpose: Auto-dispatch trigger with bounded retries.
What it does:
When a ride is created in PENDING, schedules a dispatch attempt after a fixed
delay (default 5 s). "No drivers available" and infrastructure errors are
retried with a backing-off delay until either the attempt limit or the ride
age cutoff runs out. ASSIGNED and ALREADY_RESOLVED end the chain.

Timers are threading.Timer instances; in a deployment this would be a delayed
job on a task queue. run_attempt() is the synchronous step the timers call,
so it can be driven directly as well.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from drivers.policy import DispatchPolicy, default_dispatch_policy
from rides.models import Ride, utcnow
from .dispatcher import DispatchInfrastructureError, Dispatcher
from .models import DispatchOutcome, DispatchResult
from .repository import RideNotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptReport:
    ride_id: str
    attempt: int
    outcome: Optional[DispatchOutcome] = None
    error: Optional[Exception] = None
    # seconds until the next attempt, None when the chain is over
    retry_in: Optional[float] = None


def retry_delay(policy: DispatchPolicy, attempt: int) -> float:
    """
    Delay before attempt `attempt + 1`: base delay * factor^attempt, capped.
    """
    delay = policy.auto_dispatch_delay_seconds * (policy.retry_backoff_factor ** attempt)
    return min(delay, policy.max_retry_delay_seconds)


class AutoDispatchScheduler:
    def __init__(
        self,
        dispatcher: Dispatcher,
        policy_provider: Optional[Callable[[], DispatchPolicy]] = None,
        timer_factory=threading.Timer,
    ):
        self.dispatcher = dispatcher
        self.policy_provider = policy_provider or default_dispatch_policy
        self.timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        self._stopped = False
        self._last_policy = default_dispatch_policy()

    # --- Public API ---

    def on_ride_created(self, ride: Ride) -> bool:
        """
        Returns True when a first attempt was scheduled.
        """
        policy = self.policy_provider()
        self._last_policy = policy
        if not policy.auto_dispatch_enabled:
            logger.info("Auto-dispatch is disabled, ride %s waits for a manual dispatch", ride.id)
            return False

        return self._schedule(ride.id, 1, policy.auto_dispatch_delay_seconds, ride.created_at)

    def run_attempt(self, ride_id: str, attempt: int = 1, created_at: Optional[datetime] = None) -> AttemptReport:
        try:
            policy = self.policy_provider()
        except StoreUnavailableError as exc:
            # settings unreadable, back off on the last policy that was read
            logger.error("Could not read dispatch settings for ride %s (attempt %d): %s", ride_id, attempt, exc)
            return AttemptReport(ride_id, attempt, error=exc,
                                 retry_in=self._next_retry(self._last_policy, ride_id, attempt, created_at))
        self._last_policy = policy

        if not policy.auto_dispatch_enabled:
            logger.info("Auto-dispatch disabled, dropping attempt %d for ride %s", attempt, ride_id)
            return AttemptReport(ride_id, attempt)

        try:
            outcome = self.dispatcher.dispatch(ride_id, attempt=attempt, policy=policy)
        except RideNotFoundError:
            logger.error("Ride %s vanished before auto-dispatch attempt %d", ride_id, attempt)
            return AttemptReport(ride_id, attempt)
        except DispatchInfrastructureError as exc:
            return AttemptReport(ride_id, attempt, error=exc, retry_in=self._next_retry(policy, ride_id, attempt, created_at))

        if outcome.result != DispatchResult.NO_DRIVERS_AVAILABLE:
            return AttemptReport(ride_id, attempt, outcome=outcome)

        logger.info("Searching for available drivers nearby for ride %s (attempt %d)", ride_id, attempt)
        return AttemptReport(ride_id, attempt, outcome=outcome,
                             retry_in=self._next_retry(policy, ride_id, attempt, created_at))

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def is_scheduled(self, ride_id: str) -> bool:
        with self._lock:
            return ride_id in self._timers

    def shutdown(self) -> None:
        with self._lock:
            self._stopped = True
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    # --- helpers ---

    def _next_retry(self, policy: DispatchPolicy, ride_id: str, attempt: int,
                    created_at: Optional[datetime]) -> Optional[float]:
        if attempt >= policy.max_dispatch_attempts:
            logger.warning("Giving up on ride %s after %d auto-dispatch attempts", ride_id, attempt)
            return None

        delay = retry_delay(policy, attempt)
        if created_at is not None:
            age_at_retry = (utcnow() - created_at).total_seconds() + delay
            if age_at_retry > policy.max_ride_age_seconds:
                logger.warning("Ride %s is too old for another auto-dispatch attempt", ride_id)
                return None
        return delay

    def _schedule(self, ride_id: str, attempt: int, delay: float, created_at: Optional[datetime]) -> bool:
        with self._lock:
            if self._stopped or ride_id in self._timers:
                return False
            timer = self.timer_factory(delay, self._fire, args=(ride_id, attempt, created_at))
            timer.daemon = True
            self._timers[ride_id] = timer
        timer.start()
        logger.debug("Auto-dispatch attempt %d for ride %s in %.1fs", attempt, ride_id, delay)
        return True

    def _fire(self, ride_id: str, attempt: int, created_at: Optional[datetime]) -> None:
        with self._lock:
            self._timers.pop(ride_id, None)

        try:
            report = self.run_attempt(ride_id, attempt, created_at)
        except Exception:
            # timer threads have no caller to propagate to
            logger.exception("Auto-dispatch attempt %d for ride %s crashed", attempt, ride_id)
            return

        if report.retry_in is not None:
            self._schedule(ride_id, attempt + 1, report.retry_in, created_at)
