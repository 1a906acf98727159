"""
Probe Outcome Value Object

Architectural Intent:
- Result of health probing an endpoint, per attempt or for a whole polling run
- Four distinct outcomes because each one calls for a different operator
  response: HEALTHY, UNHEALTHY (answered but wrong), UNREACHABLE (never
  connected), TIMED_OUT (ran out of time)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class ProbeKind(Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNREACHABLE = "unreachable"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ProbeOutcome:
    kind: ProbeKind
    reason: str = ""
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def is_healthy(self) -> bool:
        return self.kind is ProbeKind.HEALTHY

    @classmethod
    def healthy(cls, reason: str = "") -> ProbeOutcome:
        return cls(ProbeKind.HEALTHY, reason)

    @classmethod
    def unhealthy(cls, reason: str) -> ProbeOutcome:
        return cls(ProbeKind.UNHEALTHY, reason)

    @classmethod
    def unreachable(cls, error: str) -> ProbeOutcome:
        return cls(ProbeKind.UNREACHABLE, error)

    @classmethod
    def timed_out(cls, reason: str = "") -> ProbeOutcome:
        return cls(ProbeKind.TIMED_OUT, reason)

    def with_progress(self, attempts: int, elapsed: float) -> ProbeOutcome:
        return replace(self, attempts=attempts, elapsed=elapsed)

    def __str__(self) -> str:
        text = self.kind.value
        if self.reason:
            text = f"{text} ({self.reason})"
        if self.attempts:
            text = f"{text} after {self.attempts} attempt(s), {self.elapsed:.1f}s"
        return text
