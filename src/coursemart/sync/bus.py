"""In-process publish/subscribe bus scoped to one application session."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .events import Event

Handler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class EventBus:
    """Synchronous fan-out of session events to subscribed handlers.

    Delivery is best effort: a failing handler is logged and the remaining
    handlers still receive the event.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe:
        self._handlers[topic].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(topic)
            if handlers and handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(topic, None)

        return _unsubscribe

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to the handlers of its topic; return the delivery count."""

        delivered = 0
        for handler in tuple(self._handlers.get(event.topic, ())):
            try:
                handler(event)
            except Exception:
                self._logger.exception("Event handler failed for topic %s", event.topic)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, ()))


__all__ = ["EventBus", "Handler", "Unsubscribe"]
