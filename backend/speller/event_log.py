"""Bounded trailing log of emitted flash events."""

from __future__ import annotations

import collections
import threading

from speller.errors import EmptyLogError
from speller.models import FlashEvent


class FlashEventLog:
    """Keeps the last ``maxlen`` flashes; only the newest one drives decoding."""

    def __init__(self, maxlen: int = 64) -> None:
        if maxlen < 1:
            raise ValueError("maxlen must be >= 1")
        self._events: collections.deque[FlashEvent] = collections.deque(maxlen=maxlen)
        self._total = 0
        self._lock = threading.Lock()

    @property
    def maxlen(self) -> int:
        return self._events.maxlen

    @property
    def total(self) -> int:
        """Number of events appended since construction, including evicted ones."""
        return self._total

    def append(self, event: FlashEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._total += 1

    def latest(self) -> FlashEvent:
        with self._lock:
            if not self._events:
                raise EmptyLogError("no flash has occurred yet")
            return self._events[-1]

    def most_recent(self) -> FlashEvent | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def snapshot(self) -> list[FlashEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
