# File: workshop_capture/core/events/bus.py

import logging
import queue
from collections import defaultdict
from threading import Lock
from typing import Callable, Dict, List, Type

from .types import Event

logger = logging.getLogger(__name__)

Handler = Callable[[Event], None]


class EventBus:
    """
    In-process fan-out of pipeline events.
    Workers publish from their own threads; handlers run synchronously on the
    publishing thread, so they must be quick (update state, enqueue, return).
    """

    def __init__(self):
        self._lock = Lock()
        self._handlers: Dict[Type[Event], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[Event], handler: Handler) -> Callable[[], None]:
        """Registers a handler. Returns a callable that removes it again."""
        with self._lock:
            self._handlers[event_type].append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers[event_type]:
                    self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: Event) -> None:
        with self._lock:
            # Snapshot the handler list so handlers may (un)subscribe while being called.
            handlers = [
                h
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for h in registered
            ]

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                # A broken subscriber must not take down the worker that published.
                logger.exception(f"Event handler {handler!r} failed for {type(event).__name__}")

    def stream(self, event_type: Type[Event] = Event) -> "queue.Queue[Event]":
        """
        Queue-backed subscription for a presentation layer that polls
        (e.g. a UI loop calling queue.get(timeout=...)).
        """
        event_queue: "queue.Queue[Event]" = queue.Queue()
        self.subscribe(event_type, event_queue.put)
        return event_queue
