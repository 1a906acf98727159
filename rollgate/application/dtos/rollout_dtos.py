"""
Rollout DTOs

Architectural Intent:
- Data Transfer Objects for the rollout use case boundary
- Input validation at the application boundary, before any lock is taken
- Immutable once accepted by the RolloutController
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from rollgate.domain.value_objects.deployment_ref import DeploymentRef
from rollgate.domain.value_objects.target_host import TargetHost


@dataclass(frozen=True)
class RolloutRequest:
    host: str
    reference: str
    endpoint: str
    timeout: float = 60.0
    interval: float = 2.0
    max_attempts: int = 30
    previous_reference: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host cannot be empty")
        TargetHost.parse(self.host)
        DeploymentRef(self.reference)
        if self.previous_reference is not None:
            DeploymentRef(self.previous_reference)
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an http(s) URL, got {self.endpoint!r}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @property
    def target(self) -> TargetHost:
        return TargetHost.parse(self.host)

    @property
    def host_id(self) -> str:
        return self.target.identifier
