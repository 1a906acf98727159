"""
Event Bus Port

Architectural Intent:
- Abstract interface for publishing domain events
- Decouples the rollout controller from audit logging and history storage
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable
from rollgate.domain.events.event_base import DomainEvent

EventHandler = Callable[[DomainEvent], Awaitable[None]]


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(self, event_type: type, handler: EventHandler) -> None: ...
