"""
Probe Health Use Case

Architectural Intent:
- Bounded polling loop over a HealthCheckPort
- Process-manager restarts are asynchronous, so the first few attempts are
  expected to fail; the loop waits `interval` between attempts
- Every attempt is bounded by the remaining overall time, so the caller is
  always released by success, exhaustion or the deadline

Outcome rules:
- first HEALTHY attempt wins (attempt count recorded)
- overall deadline reached first -> TIMED_OUT
- max_attempts used up -> UNREACHABLE if no attempt ever connected,
  otherwise UNHEALTHY with the last reason
"""

from __future__ import annotations
import asyncio
import logging

from rollgate.domain.ports.health_check_port import HealthCheckPort
from rollgate.domain.value_objects.probe_outcome import ProbeKind, ProbeOutcome

logger = logging.getLogger(__name__)


class HealthProber:
    def __init__(self, health_check: HealthCheckPort, request_timeout: float = 5.0):
        self.health_check = health_check
        self.request_timeout = request_timeout

    async def probe(
        self,
        endpoint: str,
        interval: float,
        timeout: float,
        max_attempts: int,
    ) -> ProbeOutcome:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if timeout <= 0 or interval < 0:
            raise ValueError("timeout must be positive and interval non-negative")

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout
        attempts = 0
        connected = False
        last = ProbeOutcome.unreachable("no attempt made")

        def elapsed() -> float:
            return loop.time() - started

        def timed_out() -> ProbeOutcome:
            reason = f"no healthy response within {timeout:g}s"
            if last.reason and attempts:
                reason = f"{reason}; last: {last.reason}"
            outcome = ProbeOutcome.timed_out(reason).with_progress(attempts, elapsed())
            logger.warning("Probe of %s %s", endpoint, outcome)
            return outcome

        while attempts < max_attempts:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return timed_out()

            attempts += 1
            try:
                outcome = await asyncio.wait_for(
                    self.health_check.check(endpoint, min(self.request_timeout, remaining)),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                return timed_out()

            logger.debug("Probe %s attempt %d/%d: %s", endpoint, attempts, max_attempts, outcome)
            if outcome.is_healthy:
                healthy = outcome.with_progress(attempts, elapsed())
                logger.info("Probe of %s %s", endpoint, healthy)
                return healthy
            if outcome.kind is ProbeKind.UNHEALTHY:
                connected = True
            last = outcome

            if attempts >= max_attempts:
                break
            remaining = deadline - loop.time()
            if remaining <= 0:
                return timed_out()
            await asyncio.sleep(min(interval, remaining))

        if connected:
            final = ProbeOutcome.unhealthy(last.reason)
        else:
            final = ProbeOutcome.unreachable(last.reason)
        final = final.with_progress(attempts, elapsed())
        logger.warning("Probe of %s %s", endpoint, final)
        return final
