"""Local publish/subscribe registry for progress events."""

import logging
from collections.abc import Callable

from .models import ProgressEventData, ProgressEventType


logger = logging.getLogger(__name__)

ProgressEventHandler = Callable[[ProgressEventData], None]


class ProgressEventEmitter:
    """Subscribers keyed by event type, called in subscription order.

    Each emit dispatches over a snapshot of the subscriber list, so handlers
    may subscribe or unsubscribe while an event is being delivered.
    """

    def __init__(self) -> None:
        self._handlers: dict[ProgressEventType, list[ProgressEventHandler]] = {}

    def on(self, event: ProgressEventType | str, handler: ProgressEventHandler) -> None:
        handlers = self._handlers.setdefault(ProgressEventType(event), [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: ProgressEventType | str, handler: ProgressEventHandler) -> None:
        handlers = self._handlers.get(ProgressEventType(event))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: ProgressEventType, data: ProgressEventData) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(data)
            except Exception:
                logger.exception(f"Handler for {event.value} failed on video {data.video_id}")

    def listener_count(self, event: ProgressEventType | str) -> int:
        return len(self._handlers.get(ProgressEventType(event), ()))

    def clear(self) -> None:
        self._handlers.clear()
