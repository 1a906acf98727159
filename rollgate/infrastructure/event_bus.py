"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus implementation for publishing domain events
- Supports async subscription handlers
- Handlers subscribed to a base class receive every subclass event, so
  subscribing to DomainEvent observes the whole rollout lifecycle
"""

import logging
from rollgate.domain.events.event_base import DomainEvent
from rollgate.domain.ports.event_bus_port import EventHandler

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}

    def _handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        matched: list[EventHandler] = []
        for event_type in type(event).__mro__:
            matched.extend(self._handlers.get(event_type, ()))
        return matched

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            handlers = self._handlers_for(event)
            logger.debug("Publishing %s to %d handler(s)", event.event_type, len(handlers))
            for handler in handlers:
                await handler(event)

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
