"""Publish/subscribe hub for device and protocol events."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Tuple

from .models import Event, EventType

logger = logging.getLogger(__name__)


class EventStream:
    """Thread-safe event hub.

    Subscribers register for one EventType (or all events with None) and
    receive Event records in emission order. A failing subscriber is logged
    and does not prevent delivery to the others.

    Example:
        >>> stream = EventStream()
        >>> unsub = stream.subscribe(EventType.RGB, lambda e: print(e.data))
        >>> stream.emit(Event(EventType.RGB, RGB(255, 0, 0)))
        RGB(red=255, green=0, blue=0)
        >>> unsub()
    """

    def __init__(self):
        self._subscribers: List[Tuple[Optional[EventType], Callable[[Event], None]]] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        event_type: Optional[EventType],
        callback: Callable[[Event], None]
    ) -> Callable[[], None]:
        """Subscribe to events.

        Args:
            event_type: Type to listen for, or None for every event
            callback: Function receiving the Event

        Returns:
            Unsubscribe function
        """
        entry = (event_type, callback)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def emit(self, event: Event) -> None:
        """Deliver an event to all matching subscribers."""
        with self._lock:
            subscribers = list(self._subscribers)

        for event_type, callback in subscribers:
            if event_type is not None and event_type != event.event_type:
                continue
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in {event.event_type.value} subscriber: {e}")

    def clear(self) -> None:
        """Remove all subscribers."""
        with self._lock:
            self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
