from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from app.schemas.market import NormalizedTick

logger = logging.getLogger(__name__)

TickCallback = Callable[[NormalizedTick], None]


class FanoutHub:
    """In-process publish/subscribe for normalized ticks.

    ``publish`` iterates over a copy of the registrations taken at call time,
    so callbacks may subscribe or unsubscribe while a publish is running.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, TickCallback] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: TickCallback) -> Callable[[], None]:
        with self._lock:
            token = self._next_id
            self._next_id += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, tick: NormalizedTick) -> int:
        with self._lock:
            subscribers = list(self._subscribers.values())

        delivered = 0
        for callback in subscribers:
            try:
                callback(tick)
                delivered += 1
            except Exception:
                logger.exception("Subscriber callback failed for %s", tick.symbol)
        return delivered
