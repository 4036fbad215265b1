"""
Event bus for barbershop domain events.

Synchronous in-process pub/sub. Handlers execute immediately in the same
thread as the publisher, after the publisher's transaction has committed.
Handler errors are logged but never propagate to the caller.
"""

import logging
from typing import Callable, Dict, List

from core.events import BarbershopEvent

logger = logging.getLogger(__name__)

Handler = Callable[[BarbershopEvent], None]


class EventBus:
    """
    In-process event bus for barbershop domain events.

    Subscribe by event class or class name, publish by event instance.
    Handlers are called synchronously in subscription order.

    Usage:
        bus = EventBus()
        bus.subscribe(AppointmentCompleted, notify_front_desk)
        bus.publish(AppointmentCompleted.create(appointment, record))
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    @staticmethod
    def _key(event_type: str | type) -> str:
        return event_type if isinstance(event_type, str) else event_type.__name__

    def subscribe(self, event_type: str | type, callback: Handler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event class or its name (e.g. 'PaymentSettled')
            callback: Function to call when event is published
        """
        self._subscribers.setdefault(self._key(event_type), []).append(callback)

    def unsubscribe(self, event_type: str | type, callback: Handler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        handlers = self._subscribers.get(self._key(event_type), [])
        if callback not in handlers:
            return False
        handlers.remove(callback)
        return True

    def handler_count(self, event_type: str | type) -> int:
        return len(self._subscribers.get(self._key(event_type), []))

    def publish(self, event: BarbershopEvent) -> None:
        """
        Publish an event to all subscribers of its exact class.

        Args:
            event: BarbershopEvent instance to publish
        """
        event_type = event.__class__.__name__

        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
