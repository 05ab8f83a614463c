from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[E], None]


class EventBus:
    """Typed publish/subscribe keyed by event class.

    Subscribers run synchronously in publish order on the loop that received
    the frame. A subscriber that raises is logged and skipped.
    """

    def __init__(self):
        self._subscribers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Callable[[], None]:
        self._subscribers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, event_type: type) -> int:
        return len(self._subscribers.get(event_type, []))

    def publish(self, event: object) -> None:
        for handler in list(self._subscribers.get(type(event), [])):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Subscriber for {type(event).__name__} failed")
