"""Event bus for editor, workspace and configuration events.

Handlers run in subscription order on the publisher's call stack, so a
handler that has async work to do schedules it instead of awaiting (the
diagnostics manager debounces through ``Delayer``).  Handlers may publish
further events or unsubscribe themselves while an event is dispatched.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[[Any], Any]


class InMemoryEventBus:
    """Dispatches each event to the handlers registered for its exact type.

    Implements the ``EventBus`` port.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event_type]

    def publish(self, event: Any) -> None:
        # Snapshot so handlers can unsubscribe mid-dispatch
        handlers = tuple(self._handlers.get(type(event), ()))
        if not handlers:
            return
        logger.debug("event.published", event_type=type(event).__name__, handlers=len(handlers))
        for handler in handlers:
            handler(event)
