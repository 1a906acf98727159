"""
Health Check Port

Architectural Intent:
- Port interface for a single health check against an endpoint
- Polling, attempt counting and deadlines belong to the HealthProber,
  not to implementations of this port
"""

from abc import ABC, abstractmethod
from rollgate.domain.value_objects.probe_outcome import ProbeOutcome


class HealthCheckPort(ABC):
    @abstractmethod
    async def check(self, endpoint: str, timeout: float) -> ProbeOutcome:
        """
        Performs one request. Returns HEALTHY, UNHEALTHY or UNREACHABLE.
        """
        pass
