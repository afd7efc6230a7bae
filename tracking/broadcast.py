"""
Purpose: In-process publish/subscribe channel for live location changes.
What it does:
- publish(topic, event) fans an event out to every subscription on the topic.
- subscribe(topic, predicate) returns a long-lived Subscription stream.

Any message bus satisfies the same contract; this one is a dict of topic ->
subscriber queues. A slow or closed subscriber never blocks the publisher or
the other subscribers.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

LOCATION_TOPIC = "driver-locations"

# Per-subscription backlog; once full the oldest events are dropped.
DEFAULT_MAX_PENDING = 256

_CLOSED = object()


class Subscription:
    """
    One consumer's stream of events on a topic.

    Iterate it (blocks until the next event, ends when closed) or poll it
    with get(timeout). Use as a context manager to always unsubscribe.
    When the consumer falls behind max_pending events, the oldest pending
    events are dropped first. max_pending=0 means unbounded.
    """
    def __init__(self, broadcaster: "LocationBroadcaster", topic: str,
                 predicate: Optional[Callable[[Any], bool]] = None, max_pending: int = DEFAULT_MAX_PENDING):
        self.topic = topic
        self.predicate = predicate
        self.dropped = 0
        self._broadcaster = broadcaster
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_pending)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: Any) -> None:
        if self.closed:
            return
        if self.predicate is not None and not self.predicate(event):
            return
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[Any]:
        """
        Next event, or None on timeout / once closed.
        """
        if self.closed and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        self._broadcaster.unsubscribe(self)
        # wake up a consumer blocked in __iter__
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class LocationBroadcaster:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, topic: str, predicate: Optional[Callable[[Any], bool]] = None,
                  max_pending: int = DEFAULT_MAX_PENDING) -> Subscription:
        subscription = Subscription(self, topic, predicate, max_pending)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def publish(self, topic: str, event: Any) -> int:
        """
        Returns the number of subscriptions the event was offered to.
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(topic, []))

        for subscription in subscribers:
            try:
                subscription.deliver(event)
            except Exception:
                # a broken consumer filter must not starve the others
                logger.exception("Subscriber on %s failed to accept event, closing it", topic)
                subscription.close()
        return len(subscribers)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, []))
