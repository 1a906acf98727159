"""
Domain Errors

Architectural Intent:
- One exception hierarchy for every failure the rollout core distinguishes
- Infrastructure failures (launch, connection) are separate from semantic
  command failures, which are plain CommandResult values and never raised
- Each error keeps the original exception and enough context to build a
  cause chain for the final rollout record
"""

from __future__ import annotations
from typing import Optional


class RollgateError(Exception):
    """Base class for all rollgate errors."""


class LaunchError(RollgateError):
    """A command could not be started at all (missing binary, not executable)."""

    def __init__(self, command: str, original_error: Exception):
        self.command = command
        self.original_error = original_error
        super().__init__(f"Cannot launch {command!r}: {original_error}")


class CommandLaunchError(LaunchError):
    """Session to the host was established but the command could not start."""

    def __init__(self, host: str, command: str, original_error: Exception):
        self.host = host
        super().__init__(command, original_error)
        self.args = (f"Cannot launch {command!r} on {host}: {original_error}",)


class HostConnectionError(RollgateError, ConnectionError):
    """Could not reach or authenticate to a host.

    Raised by the remote executor once its bounded retries are exhausted.
    """

    def __init__(self, host: str, original_error: Exception, attempts: int = 1):
        self.host = host
        self.original_error = original_error
        self.attempts = attempts
        super().__init__(
            f"Cannot connect to {host} after {attempts} attempt(s): {original_error}"
        )


class RolloutConflictError(RollgateError):
    """A rollout is already in progress for the target host."""

    def __init__(self, host: str, active_status: Optional[str] = None):
        self.host = host
        self.active_status = active_status
        detail = f" (currently {active_status})" if active_status else ""
        super().__init__(f"Rollout already in progress for {host}{detail}")


class InvalidTransition(RollgateError, ValueError):
    """A rollout state transition was requested from the wrong state."""
