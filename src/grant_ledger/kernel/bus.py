"""
In-process Event Bus

Synchronous pub/sub for ledger events. External indexers and UIs subscribe
to event types ("AllocationAdded", "Claimed", ...) or to "*" for everything;
the ledger publishes each event after it has been persisted.
"""

from collections import defaultdict
from typing import Callable

from grant_ledger.kernel.events import Event
from grant_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Event], None]

ALL_EVENTS = "*"


class EventBus:
    """
    Simple synchronous in-process bus

    Subscribers are called in registration order. A failing subscriber is
    logged and skipped; it never affects the ledger or other subscribers,
    because the event is already durable when it is published.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler for an event type ("*" for every event)

        Args:
            event_type: Event type to receive (e.g., "Claimed")
            handler: Callable receiving the Event
        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "Event handler registered",
            event_type=event_type,
            total_handlers=len(self._handlers[event_type]),
        )

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a previously registered handler (no-op if absent)"""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """Deliver an event to its type's subscribers, then to "*" subscribers"""
        handlers = self._handlers.get(event.event_type, []) + self._handlers.get(
            ALL_EVENTS, []
        )

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    stream_id=event.stream_id,
                    error=str(e),
                    exc_info=True,
                )

    def publish_events(self, events: list[Event]) -> None:
        for event in events:
            self.publish(event)

    def get_event_types(self) -> list[str]:
        """Event types with at least one subscriber"""
        return [event_type for event_type, handlers in self._handlers.items() if handlers]

    def clear(self) -> None:
        self._handlers.clear()
