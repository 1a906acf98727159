"""
Fabric Adapter

Architectural Intent:
- Infrastructure adapter implementing RemoteExecutorPort via Fabric/SSH
- One session per command: open, run, close in a finally block on every
  exit path (success, failure, timeout, network error)
- Blocking Fabric calls run in the default executor

Failure classes:
- Connection could not be opened or authenticated -> retried with
  exponential backoff, then HostConnectionError
- Channel refused, or shell exit 126/127 -> CommandLaunchError
- Command ran and exited non-zero -> CommandResult, never retried
- Command exceeded its timeout -> CommandResult(timed_out=True)

Security:
- SSH connections use connect_timeout; keys come from Credentials or agent
"""

import asyncio
import logging
import time
from typing import Any, Callable

from fabric import Connection
from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import SSHException

from rollgate.domain.errors import CommandLaunchError, HostConnectionError
from rollgate.domain.ports.remote_executor_port import RemoteExecutorPort
from rollgate.domain.value_objects.command_result import (
    CommandResult,
    LAUNCH_FAILURE_CODES,
    TIMED_OUT_STATUS,
)
from rollgate.domain.value_objects.credentials import Credentials
from rollgate.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)

# NoValidConnectionsError, socket.timeout and DNS failures are all OSError
CONNECT_ERRORS = (SSHException, OSError, EOFError)


class FabricAdapter(RemoteExecutorPort):
    """Adapter implementing RemoteExecutorPort via Fabric/SSH."""

    def __init__(
        self,
        connect_retries: int = 3,
        retry_backoff: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if connect_retries < 1:
            raise ValueError(f"connect_retries must be >= 1, got {connect_retries}")
        self.connect_retries = connect_retries
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    def _get_connection(self, host: TargetHost, credentials: Credentials) -> Connection:
        connect_kwargs: dict[str, Any] = {
            "allow_agent": credentials.allow_agent,
            "look_for_keys": credentials.look_for_keys,
        }
        if credentials.key_filename:
            connect_kwargs["key_filename"] = credentials.key_filename
        if credentials.password:
            connect_kwargs["password"] = credentials.password
        return Connection(
            host=host.host,
            user=host.user or credentials.user,
            port=host.port,
            connect_timeout=credentials.connect_timeout,
            connect_kwargs=connect_kwargs,
        )

    async def run_remote(
        self,
        host: TargetHost,
        credentials: Credentials,
        command: str,
        timeout: float,
    ) -> CommandResult:
        return await asyncio.get_running_loop().run_in_executor(
            None, self._run_blocking, host, credentials, command, timeout
        )

    def _run_blocking(
        self,
        host: TargetHost,
        credentials: Credentials,
        command: str,
        timeout: float,
    ) -> CommandResult:
        conn = self._open(host, credentials)
        try:
            return self._execute(conn, host, command, timeout)
        finally:
            conn.close()
            logger.debug("Closed SSH session to %s", host)

    def _open(self, host: TargetHost, credentials: Credentials) -> Connection:
        last_error: Exception = RuntimeError("no connection attempt made")
        for attempt in range(1, self.connect_retries + 1):
            conn = self._get_connection(host, credentials)
            try:
                conn.open()
                logger.debug("Opened SSH session to %s (attempt %d)", host, attempt)
                return conn
            except CONNECT_ERRORS as e:
                conn.close()
                last_error = e
                if attempt == self.connect_retries:
                    break
                delay = self.retry_backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Connection to %s failed (attempt %d/%d): %s; retrying in %.1fs",
                    host,
                    attempt,
                    self.connect_retries,
                    e,
                    delay,
                )
                self._sleep(delay)

        logger.error("Giving up on %s after %d attempt(s): %s", host, self.connect_retries, last_error)
        raise HostConnectionError(str(host), last_error, attempts=self.connect_retries) from last_error

    def _execute(
        self, conn: Connection, host: TargetHost, command: str, timeout: float
    ) -> CommandResult:
        started = time.monotonic()
        try:
            result = conn.run(command, hide=True, warn=True, timeout=timeout, in_stream=False)
        except CommandTimedOut as e:
            logger.warning("Command on %s timed out after %ss", host, timeout)
            partial = e.result
            return CommandResult(
                exit_status=TIMED_OUT_STATUS,
                stdout=getattr(partial, "stdout", "") or "",
                stderr=getattr(partial, "stderr", "") or "",
                duration=time.monotonic() - started,
                timed_out=True,
            )
        except SSHException as e:
            raise CommandLaunchError(str(host), command, e) from e
        except (OSError, EOFError) as e:
            # Dropped mid-command: the command may have partially applied,
            # so this is reported without a retry.
            raise HostConnectionError(str(host), e, attempts=1) from e

        if result.exited in LAUNCH_FAILURE_CODES:
            detail = (result.stderr or "").strip() or f"exit status {result.exited}"
            raise CommandLaunchError(str(host), command, RuntimeError(detail))

        if result.failed:
            logger.debug("Command on %s exited %d: %s", host, result.exited, result.stderr)
        return CommandResult(
            exit_status=result.exited,
            stdout=result.stdout,
            stderr=result.stderr,
            duration=time.monotonic() - started,
        )
