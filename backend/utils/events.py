"""Thread-safe pub/sub event bus for inter-module communication."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    FLASH = "flash"
    FLASHING_STATUS = "flashing_status"
    PROBABILITY = "probability"
    SELECTION_UPDATED = "selection_updated"
    SYMBOL_DECODED = "symbol_decoded"
    TRANSCRIPT_UPDATED = "transcript_updated"
    SUBSCRIPTION_LOST = "subscription_lost"
    SYSTEM_STATUS = "system_status"


@dataclass
class Event:
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_json(self) -> dict:
        return {
            "type": self.type.value,
            "data": self.data,
            "ts": self.timestamp,
        }


class EventBus:
    """Simple thread-safe pub/sub. Subscribers get their own queue."""

    def __init__(self) -> None:
        self._subscribers: dict[str, queue.Queue[Event]] = {}
        self._handlers: dict[EventType, list[Callable[[Event], None]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, subscriber_id: str, maxsize: int = 256) -> queue.Queue[Event]:
        with self._lock:
            q: queue.Queue[Event] = queue.Queue(maxsize=maxsize)
            self._subscribers[subscriber_id] = q
            return q

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers.pop(subscriber_id, None)

    def on(self, event_type: EventType, handler: Callable[[Event], None]) -> None:
        """Register a synchronous handler for a specific event type."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def off(self, event_type: EventType, handler: Callable[[Event], None]) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, event: Event) -> None:
        with self._lock:
            subscribers = list(self._subscribers.values())
            handlers = list(self._handlers.get(event.type, []))

        for q in subscribers:
            try:
                q.put_nowait(event)
            except queue.Full:
                # Drop the oldest so slow consumers see the latest state.
                try:
                    q.get_nowait()
                except queue.Empty:
                    pass
                try:
                    q.put_nowait(event)
                except queue.Full:
                    logger.debug("Subscriber queue full, dropping %s", event.type.value)

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.type.value)


event_bus = EventBus()
