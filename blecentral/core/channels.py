"""Multicast channels used for the controller's event and state outputs."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)


class Subscription:
    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def cancel(self) -> None:
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *_: object) -> None:
        self.cancel()


class EventChannel(Generic[T]):
    """Broadcasts each published value to the subscribers present at that time.

    Late subscribers only see future values; nothing is buffered. A subscriber
    that raises is logged and skipped; the others still receive the value.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        return Subscription(lambda: self._unsubscribe(token))

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                LOGGER.exception("Subscriber %r failed on %r", callback, value)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


class CurrentValueChannel(EventChannel[T]):
    """Event channel that also holds a current value.

    New subscribers receive the current value immediately, then every change.
    """

    def __init__(self, initial: T) -> None:
        super().__init__()
        self._value = initial

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        subscription = super().subscribe(callback)
        callback(self._value)
        return subscription

    def publish(self, value: T) -> None:
        self._value = value
        super().publish(value)
