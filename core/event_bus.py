"""
Event bus for field-service domain events.

Record services publish after their write has landed: a service call
reaching completed, a quotation converted into a call, an invoice paid in
full. Follow-up bookkeeping subscribes here rather than being called from
the publishing service; completing a call credits the agent and stamps the
equipment's service date this way.

Delivery is synchronous and in-process, in subscription order. A failing
handler is logged and skipped; the publishing operation has already been
committed.
"""

import logging
from typing import Callable, Dict, List, Type, Union

from core.events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


def _event_name(event_type: Union[str, Type[DomainEvent]]) -> str:
    return event_type if isinstance(event_type, str) else event_type.__name__


class EventBus:
    """
    In-process event bus.

    Subscribe by event class (or its name), publish by event instance.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event_type: Union[str, Type[DomainEvent]], callback: EventHandler):
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event class (e.g. ServiceCallCompleted) or its name
            callback: Called with each published event of that type
        """
        self._subscribers.setdefault(_event_name(event_type), []).append(callback)

    def publish(self, event: DomainEvent):
        """Deliver an event to every subscriber of its type."""
        event_type = event.__class__.__name__
        callbacks = self._subscribers.get(event_type, [])
        if not callbacks:
            logger.debug(f"No handlers for {event_type} (event_id={event.event_id})")
            return

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
