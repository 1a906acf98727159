"""
Domain Events Package

Architectural Intent:
- Base class for domain events; concrete rollout events live with the
  Rollout aggregate in rollgate.domain.entities.rollout
"""

from rollgate.domain.events.event_base import DomainEvent

__all__ = ["DomainEvent"]
