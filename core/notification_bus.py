"""
Process-wide change notification bus.

A single payload-less signal, ``pantry-update``, is published after every
successful local mutation and every remote row-change event. Subscribers
treat it as "something changed, refetch" and never as a description of
what changed.

Thread Safety:
    Remote notifications are published from the change-feed listener
    thread while subscriptions come and go on request threads, so the
    subscriber list is guarded by a lock and copied before delivery.
"""

from __future__ import annotations

import threading
from typing import Callable, List

from logging_config import get_logger


logger = get_logger(__name__)

CHANGE_SIGNAL = "pantry-update"

Subscriber = Callable[[], None]


class ChangeBus:
    """
    Fire-and-forget publish/subscribe with no payload.

    Delivery is synchronous on the publishing thread. A subscriber that
    raises is logged and skipped; the rest still receive the signal.
    """

    def __init__(self, signal_name: str = CHANGE_SIGNAL):
        self.signal_name = signal_name
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()
        self._published = 0

    @property
    def published_count(self) -> int:
        """Number of signals published since creation."""
        return self._published

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for the change signal.

        Returns:
            A function that removes this subscription when called
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def publish(self) -> None:
        """Notify every current subscriber that something changed."""
        with self._lock:
            subscribers = list(self._subscribers)
            self._published += 1

        logger.debug(f"Publishing {self.signal_name} to {len(subscribers)} subscriber(s)")

        for callback in subscribers:
            try:
                callback()
            except Exception as e:
                logger.error(f"{self.signal_name} subscriber {callback!r} failed: {e}")
