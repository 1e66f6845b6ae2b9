# src/herald/dispatch/handlers.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import MissingOption

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any, Any], Any]


@dataclass(slots=True, frozen=True)
class EventHandler:
    callback: EventCallback
    context: Any = None


class HandlerRegistry:
    """
    One handler per event name ("message", "ready", ...).

    Handlers are called as callback(payload, context); a handler registered
    without its own context gets the bot's default context.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, EventHandler] = {}

    def add(self, event: str, callback: EventCallback | None, context: Any = None) -> EventHandler:
        if callback is None:
            raise MissingOption("callback")
        handler = EventHandler(callback=callback, context=context)
        self._handlers[event] = handler
        return handler

    def remove(self, event: str) -> bool:
        return self._handlers.pop(event, None) is not None

    def get(self, event: str) -> EventHandler | None:
        return self._handlers.get(event)

    def all(self) -> dict[str, EventHandler]:
        return dict(self._handlers)

    def dispatch(self, event: str, payload: Any, default_context: Any = None) -> Any:
        """Invoke the handler for event; returns its result (None if nothing is registered)."""
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("No handler for event %r.", event)
            return None
        context = default_context if handler.context is None else handler.context
        return handler.callback(payload, context)
