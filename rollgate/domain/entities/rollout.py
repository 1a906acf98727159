"""
Rollout Module

Architectural Intent:
- Rollout aggregate is the consistency boundary for one health-gated rollout
- Lifecycle: PENDING -> DEPLOYING -> PROBING -> {SUCCEEDED | FAILED | ROLLED_BACK}
- Transitions are domain methods; each returns a new instance so every
  intermediate snapshot stays valid for auditing
- A terminal rollout refuses every further transition
- Failure causes accumulate in order, so a double failure (probe, then
  rollback) keeps both records

Domain Events:
- RolloutStartedEvent: deploy of the new reference begins
- RolloutProbingEvent: deploy finished, health probing begins
- RollbackStartedEvent: probe failed, known-good reference is being redeployed
- RolloutFinishedEvent: terminal state reached; carries the structured record
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum, auto
from typing import Any, Optional
import uuid

from rollgate.domain.errors import InvalidTransition
from rollgate.domain.events.event_base import DomainEvent


class RolloutStatus(Enum):
    PENDING = auto()
    DEPLOYING = auto()
    PROBING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    ROLLED_BACK = auto()

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RolloutStatus.SUCCEEDED, RolloutStatus.FAILED, RolloutStatus.ROLLED_BACK}
)


class RolloutStage(Enum):
    DEPLOY = "deploy"
    PROBE = "probe"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class StageFailure:
    stage: RolloutStage
    cause: str

    def __str__(self) -> str:
        return f"{self.stage.value}: {self.cause}"

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage.value, "cause": self.cause}


@dataclass(frozen=True)
class RolloutStartedEvent(DomainEvent):
    host: str = ""
    reference: str = ""


@dataclass(frozen=True)
class RolloutProbingEvent(DomainEvent):
    host: str = ""
    reference: str = ""


@dataclass(frozen=True)
class RollbackStartedEvent(DomainEvent):
    host: str = ""
    reference: str = ""


@dataclass(frozen=True)
class RolloutFinishedEvent(DomainEvent):
    record: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        return self.record.get("status", "")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), **self.record}


def _now() -> str:
    return datetime.now(UTC).isoformat()


class Rollout:
    __slots__ = (
        "_rollout_id",
        "_host",
        "_reference",
        "_status",
        "_failed_stage",
        "_causes",
        "_rollback_reference",
        "_started_at",
        "_finished_at",
        "_domain_events",
    )

    def __init__(
        self,
        host: str,
        reference: str,
        rollout_id: Optional[str] = None,
        status: RolloutStatus = RolloutStatus.PENDING,
        failed_stage: Optional[RolloutStage] = None,
        causes: tuple[StageFailure, ...] = (),
        rollback_reference: Optional[str] = None,
        started_at: Optional[str] = None,
        finished_at: Optional[str] = None,
        domain_events: tuple[DomainEvent, ...] = (),
    ):
        if not host:
            raise ValueError("Rollout host cannot be empty")
        if not reference:
            raise ValueError("Rollout reference cannot be empty")
        self._rollout_id = rollout_id or uuid.uuid4().hex[:12]
        self._host = host
        self._reference = reference
        self._status = status
        self._failed_stage = failed_stage
        self._causes = causes
        self._rollback_reference = rollback_reference
        self._started_at = started_at or _now()
        self._finished_at = finished_at
        self._domain_events = domain_events

    @property
    def rollout_id(self) -> str:
        return self._rollout_id

    @property
    def host(self) -> str:
        return self._host

    @property
    def reference(self) -> str:
        return self._reference

    @property
    def status(self) -> RolloutStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status.is_terminal

    @property
    def failed_stage(self) -> Optional[RolloutStage]:
        return self._failed_stage

    @property
    def causes(self) -> tuple[StageFailure, ...]:
        return self._causes

    @property
    def rollback_reference(self) -> Optional[str]:
        return self._rollback_reference

    @property
    def started_at(self) -> str:
        return self._started_at

    @property
    def finished_at(self) -> Optional[str]:
        return self._finished_at

    @property
    def domain_events(self) -> tuple[DomainEvent, ...]:
        return self._domain_events

    def _evolve(self, event: Optional[DomainEvent] = None, **changes: Any) -> Rollout:
        fields = {
            "host": self._host,
            "reference": self._reference,
            "rollout_id": self._rollout_id,
            "status": self._status,
            "failed_stage": self._failed_stage,
            "causes": self._causes,
            "rollback_reference": self._rollback_reference,
            "started_at": self._started_at,
            "finished_at": self._finished_at,
            "domain_events": self._domain_events,
        }
        fields.update(changes)
        if event is not None:
            fields["domain_events"] = fields["domain_events"] + (event,)
        return Rollout(**fields)

    def _require(self, *allowed: RolloutStatus, action: str) -> None:
        if self._status.is_terminal:
            raise InvalidTransition(
                f"Rollout {self._rollout_id} is terminal ({self._status.name}); "
                f"cannot {action}"
            )
        if self._status not in allowed:
            names = " or ".join(s.name for s in allowed)
            raise InvalidTransition(
                f"Rollout must be {names} to {action}, is {self._status.name}"
            )

    def _finish(self, **changes: Any) -> Rollout:
        finished = self._evolve(finished_at=_now(), **changes)
        return finished._evolve(
            RolloutFinishedEvent(
                aggregate_id=self._rollout_id, record=finished.to_record()
            )
        )

    def start_deploy(self) -> Rollout:
        self._require(RolloutStatus.PENDING, action="start deploying")
        return self._evolve(
            RolloutStartedEvent(
                aggregate_id=self._rollout_id,
                host=self._host,
                reference=self._reference,
            ),
            status=RolloutStatus.DEPLOYING,
        )

    def start_probe(self) -> Rollout:
        self._require(RolloutStatus.DEPLOYING, action="start probing")
        return self._evolve(
            RolloutProbingEvent(
                aggregate_id=self._rollout_id,
                host=self._host,
                reference=self._reference,
            ),
            status=RolloutStatus.PROBING,
        )

    def record_failure(self, stage: RolloutStage, cause: str) -> Rollout:
        """Append a cause without leaving the current state."""
        self._require(
            RolloutStatus.DEPLOYING, RolloutStatus.PROBING, action="record a failure"
        )
        return self._evolve(causes=self._causes + (StageFailure(stage, cause),))

    def start_rollback(self, reference: str) -> Rollout:
        self._require(RolloutStatus.PROBING, action="start a rollback")
        if not self._causes:
            raise InvalidTransition("Rollback requires a recorded probe failure")
        return self._evolve(
            RollbackStartedEvent(
                aggregate_id=self._rollout_id,
                host=self._host,
                reference=reference,
            ),
            rollback_reference=reference,
        )

    def succeed(self) -> Rollout:
        self._require(RolloutStatus.PROBING, action="succeed")
        if self._causes:
            raise InvalidTransition("Rollout with recorded failures cannot succeed")
        return self._finish(status=RolloutStatus.SUCCEEDED)

    def roll_back(self) -> Rollout:
        self._require(RolloutStatus.PROBING, action="complete a rollback")
        if self._rollback_reference is None:
            raise InvalidTransition("No rollback was started")
        return self._finish(status=RolloutStatus.ROLLED_BACK)

    def fail(self, stage: RolloutStage, cause: Optional[str] = None) -> Rollout:
        self._require(
            RolloutStatus.PENDING,
            RolloutStatus.DEPLOYING,
            RolloutStatus.PROBING,
            action="fail",
        )
        causes = self._causes
        if cause is not None:
            causes = causes + (StageFailure(stage, cause),)
        return self._finish(
            status=RolloutStatus.FAILED, failed_stage=stage, causes=causes
        )

    def to_record(self) -> dict[str, Any]:
        """Structured record for log/metrics collection."""
        return {
            "rollout_id": self._rollout_id,
            "host": self._host,
            "reference": self._reference,
            "status": self._status.name,
            "failed_stage": self._failed_stage.value if self._failed_stage else None,
            "causes": [c.to_dict() for c in self._causes],
            "rollback_reference": self._rollback_reference,
            "started_at": self._started_at,
            "finished_at": self._finished_at,
        }

    def __repr__(self) -> str:
        return (
            f"Rollout(rollout_id={self._rollout_id}, host={self._host}, "
            f"reference={self._reference}, status={self._status}, "
            f"causes={list(map(str, self._causes))})"
        )
