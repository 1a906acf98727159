"""
Rollout Controller Use Case

Architectural Intent:
- Sequences DeployStage -> HealthProber for one RolloutRequest and drives the
  Rollout aggregate to exactly one terminal state
- Holds the only shared state: a registry of hosts with a non-terminal
  rollout. A second request for a busy host is refused with
  RolloutConflictError instead of being queued
- Publishes the aggregate's domain events once the rollout is terminal

State Machine:
- DEPLOYING: deploy failure of any kind -> FAILED(deploy), no rollback
- PROBING:   HEALTHY -> SUCCEEDED; anything else (or cancel) -> rollback
- Rollback:  redeploy + probe the known-good reference;
             healthy -> ROLLED_BACK, otherwise FAILED(probe) with both causes

Concurrency:
- Lock acquisition happens before the first await in submit(), which makes
  check-and-register atomic on the event loop
- Cancellation is accepted only while PROBING the new reference; a deploy
  and the rollback that follows a failed probe are never interrupted
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Optional

from rollgate.application.dtos.rollout_dtos import RolloutRequest
from rollgate.application.use_cases.deploy_stage import DeployStage
from rollgate.application.use_cases.probe_health import HealthProber
from rollgate.domain.entities.rollout import Rollout, RolloutStage, RolloutStatus
from rollgate.domain.errors import (
    HostConnectionError,
    RollgateError,
    RolloutConflictError,
)
from rollgate.domain.ports.event_bus_port import EventBusPort
from rollgate.domain.ports.rollout_history_port import RolloutHistoryPort
from rollgate.domain.value_objects.probe_outcome import ProbeOutcome

logger = logging.getLogger(__name__)

CANCELLED_CAUSE = "cancelled"


@dataclass
class _ActiveRollout:
    rollout: Rollout
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)


class RolloutController:
    def __init__(
        self,
        deploy_stage: DeployStage,
        prober: HealthProber,
        event_bus: Optional[EventBusPort] = None,
        history: Optional[RolloutHistoryPort] = None,
    ):
        self.deploy_stage = deploy_stage
        self.prober = prober
        self.event_bus = event_bus
        self.history = history
        self._active: dict[str, _ActiveRollout] = {}

    @property
    def active_hosts(self) -> list[str]:
        return list(self._active)

    def status(self, host: str) -> Optional[RolloutStatus]:
        """Status of the in-flight rollout for host, None when idle."""
        entry = self._active.get(host.lower())
        return entry.rollout.status if entry else None

    def cancel(self, host: str) -> bool:
        """Request cancellation. Only the probe of the new reference can be cancelled."""
        entry = self._active.get(host.lower())
        if entry is None or entry.rollout.status is not RolloutStatus.PROBING:
            logger.warning("[%s] cancel refused (status=%s)", host, self.status(host))
            return False
        if entry.rollout.rollback_reference is not None:
            logger.warning(
                "[%s] cancel refused, rolling back to %s", host, entry.rollout.rollback_reference
            )
            return False
        logger.warning("[%s] cancel requested during probing", host)
        entry.cancelled.set()
        return True

    def _acquire(self, request: RolloutRequest) -> _ActiveRollout:
        key = request.host_id
        existing = self._active.get(key)
        if existing is not None:
            raise RolloutConflictError(key, existing.rollout.status.name)
        entry = _ActiveRollout(Rollout(host=key, reference=request.reference))
        self._active[key] = entry
        return entry

    def _release(self, key: str) -> None:
        self._active.pop(key, None)

    async def submit(self, request: RolloutRequest) -> Rollout:
        """
        Runs one rollout to a terminal state and returns it.
        Raises RolloutConflictError immediately if the host is busy.
        """
        entry = self._acquire(request)
        key = request.host_id
        logger.info("[%s] rollout %s of %s accepted", key, entry.rollout.rollout_id, request.reference)
        try:
            rollout = await self._run(request, entry)
        except Exception:
            logger.exception("[%s] rollout aborted by unexpected error", key)
            raise
        finally:
            self._release(key)

        self._report(rollout)
        if self.event_bus is not None:
            await self.event_bus.publish(list(rollout.domain_events))
        return rollout

    def _advance(self, entry: _ActiveRollout, rollout: Rollout) -> Rollout:
        entry.rollout = rollout
        return rollout

    async def _run(self, request: RolloutRequest, entry: _ActiveRollout) -> Rollout:
        rollout = self._advance(entry, entry.rollout.start_deploy())
        try:
            known_good = await self._known_good_reference(request)
        except HostConnectionError as e:
            # Unreachable after retries, so the deploy is not attempted
            return rollout.fail(RolloutStage.DEPLOY, str(e))

        try:
            deployed = await self.deploy_stage.deploy(request)
        except RollgateError as e:
            return rollout.fail(RolloutStage.DEPLOY, str(e))
        if not deployed.ok:
            return rollout.fail(RolloutStage.DEPLOY, deployed.describe())

        rollout = self._advance(entry, rollout.start_probe())
        outcome = await self._probe_unless_cancelled(request, entry)
        if outcome is not None and outcome.is_healthy:
            return rollout.succeed()

        cause = CANCELLED_CAUSE if outcome is None else f"{request.reference} {outcome}"
        rollout = self._advance(entry, rollout.record_failure(RolloutStage.PROBE, cause))
        return await self._roll_back(request, entry, rollout, known_good)

    async def _known_good_reference(self, request: RolloutRequest) -> Optional[str]:
        if request.previous_reference:
            return request.previous_reference
        if self.history is not None:
            reference = self.history.last_good_reference(request.host_id)
            if reference:
                return reference
        try:
            return await self.deploy_stage.current_reference(request)
        except HostConnectionError:
            raise
        except RollgateError as e:
            logger.warning("[%s] known-good reference unavailable: %s", request.host_id, e)
            return None

    async def _probe_unless_cancelled(
        self, request: RolloutRequest, entry: _ActiveRollout
    ) -> Optional[ProbeOutcome]:
        probe_task = asyncio.ensure_future(
            self.prober.probe(
                request.endpoint, request.interval, request.timeout, request.max_attempts
            )
        )
        cancel_task = asyncio.ensure_future(entry.cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {probe_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
        if probe_task in done:
            return probe_task.result()

        probe_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await probe_task
        return None

    async def _roll_back(
        self,
        request: RolloutRequest,
        entry: _ActiveRollout,
        rollout: Rollout,
        known_good: Optional[str],
    ) -> Rollout:
        key = request.host_id
        if not known_good or known_good == request.reference:
            logger.error(
                "[%s] probe failed and no known-good reference to roll back to; "
                "host left running %s",
                key,
                request.reference,
            )
            return rollout.record_failure(
                RolloutStage.ROLLBACK, "no known-good reference to roll back to"
            ).fail(RolloutStage.PROBE)

        logger.warning("[%s] rolling back %s -> %s", key, request.reference, known_good)
        rollout = self._advance(entry, rollout.start_rollback(known_good))

        try:
            redeployed = await self.deploy_stage.deploy(request, reference=known_good)
        except RollgateError as e:
            return self._double_failure(rollout, f"redeploy of {known_good} failed: {e}")
        if not redeployed.ok:
            return self._double_failure(rollout, redeployed.describe())

        outcome = await self.prober.probe(
            request.endpoint, request.interval, request.timeout, request.max_attempts
        )
        if not outcome.is_healthy:
            return self._double_failure(rollout, f"{known_good} {outcome}")

        logger.warning("[%s] rolled back to %s", key, known_good)
        return rollout.roll_back()

    def _double_failure(self, rollout: Rollout, cause: str) -> Rollout:
        failed = rollout.record_failure(RolloutStage.ROLLBACK, cause).fail(RolloutStage.PROBE)
        logger.error(
            "[%s] ROLLBACK FAILED, host state unknown: %s",
            rollout.host,
            "; ".join(str(c) for c in failed.causes),
        )
        return failed

    def _report(self, rollout: Rollout) -> None:
        causes = "; ".join(str(c) for c in rollout.causes)
        if rollout.status is RolloutStatus.SUCCEEDED:
            logger.info("[%s] rollout %s SUCCEEDED", rollout.host, rollout.rollout_id)
        elif rollout.status is RolloutStatus.ROLLED_BACK:
            logger.warning(
                "[%s] rollout %s ROLLED_BACK to %s: %s",
                rollout.host,
                rollout.rollout_id,
                rollout.rollback_reference,
                causes,
            )
        else:
            logger.error("[%s] rollout %s FAILED: %s", rollout.host, rollout.rollout_id, causes)
