"""
Event Bus

Named-topic publish/subscribe used to surface database initialization and
record operation failures without forcing callers to handle every exception
path. Delivery is synchronous and in subscription order.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DB_INIT_ERROR = "database_initialization_error"
MODEL_OP_ERROR = "model_operation_error"

EventHandler = Callable[[Any], None]


class EventBus:
    """
    In-process event bus keyed by topic name.

    A handler that raises is logged and skipped so the remaining handlers
    still receive the event.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> EventHandler:
        """
        Subscribe a handler to a topic.

        Args:
            topic: Topic name, e.g. ``MODEL_OP_ERROR``
            handler: Callable receiving the dispatched context

        Returns:
            The handler, so it can be passed to ``unsubscribe`` later
        """
        self._subscribers[topic].append(handler)
        return handler

    def unsubscribe(self, topic: str, handler: EventHandler) -> bool:
        """Remove one subscription of ``handler`` from ``topic``"""
        handlers = self._subscribers.get(topic)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del self._subscribers[topic]
        return True

    def clear(self, topic: Optional[str] = None) -> None:
        """Remove all subscriptions of one topic, or of every topic"""
        if topic is None:
            self._subscribers.clear()
        else:
            self._subscribers.pop(topic, None)

    def dispatch(self, topic: str, context: Any = None) -> None:
        """Deliver ``context`` to every handler of ``topic``"""
        handlers = self._subscribers.get(topic)
        if not handlers:
            return

        for handler in list(handlers):
            try:
                handler(context)
            except Exception:
                logger.exception(f"Event handler {handler!r} failed for topic {topic}")

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        if topic is not None:
            return len(self._subscribers.get(topic, ()))
        return sum(len(handlers) for handlers in self._subscribers.values())


# Process-wide bus used by the record engine and the registry
event_bus = EventBus()


def dispatch(topic: str, context: Any = None) -> None:
    event_bus.dispatch(topic, context)


def subscribe(topic: str, handler: EventHandler) -> EventHandler:
    return event_bus.subscribe(topic, handler)


def unsubscribe(topic: str, handler: EventHandler) -> bool:
    return event_bus.unsubscribe(topic, handler)


def clear(topic: Optional[str] = None) -> None:
    event_bus.clear(topic)


def on_database_init_error(handler: EventHandler) -> EventHandler:
    """Subscribe to failures raised while a connection is being set up."""
    return event_bus.subscribe(DB_INIT_ERROR, handler)


def on_model_operation_error(handler: EventHandler) -> EventHandler:
    """Subscribe to storage failures raised by record operations."""
    return event_bus.subscribe(MODEL_OP_ERROR, handler)
