"""Message transport contract and the in-process implementation.

The coordinator only needs ``send`` and ``on``/``off``. ``LocalTransport``
routes inbound payloads to handlers by their ``type`` field and fans
outbound messages out to sinks, such as the queues of connected websockets.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel


logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], None]
OutboundSink = Callable[[dict[str, Any]], None]

# Handlers registered under this name receive every inbound message
ANY_MESSAGE = "message"


class Transport(Protocol):
    """Publish/subscribe channel carrying typed progress messages."""

    def send(self, message: BaseModel | dict[str, Any]) -> None: ...

    def on(self, message_type: str, handler: MessageHandler) -> None: ...

    def off(self, message_type: str, handler: MessageHandler) -> None: ...


class LocalTransport:
    """In-process transport used by the API and by tests."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._sinks: list[OutboundSink] = []

    def on(self, message_type: str, handler: MessageHandler) -> None:
        handlers = self._handlers.setdefault(message_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, message_type: str, handler: MessageHandler) -> None:
        handlers = self._handlers.get(message_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def add_sink(self, sink: OutboundSink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: OutboundSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def send(self, message: BaseModel | dict[str, Any]) -> None:
        """Serialize an outbound message and hand it to every sink."""
        if isinstance(message, BaseModel):
            payload = message.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            payload = dict(message)
        logger.debug(f"Sending {payload.get('type')} to {len(self._sinks)} sink(s)")
        for sink in list(self._sinks):
            try:
                sink(payload)
            except Exception:
                logger.exception(f"Outbound sink failed for {payload.get('type')}")

    def deliver(self, raw: Any) -> bool:
        """Dispatch an inbound payload to the handlers for its type.

        Accepts raw dicts or already validated message models. Payloads
        without a string ``type`` are dropped.
        Returns whether the payload was dispatched.
        """
        if isinstance(raw, BaseModel):
            message_type = getattr(raw, "type", None)
        elif isinstance(raw, dict):
            message_type = raw.get("type")
        else:
            message_type = None
        if not isinstance(message_type, str):
            logger.debug("Dropping inbound payload without a message type")
            return False

        handlers = [*self._handlers.get(message_type, ()), *self._handlers.get(ANY_MESSAGE, ())]
        for handler in handlers:
            try:
                handler(raw)
            except Exception:
                logger.exception(f"Transport handler for {message_type} failed")
        return True

    def clear(self) -> None:
        self._handlers.clear()
        self._sinks.clear()
