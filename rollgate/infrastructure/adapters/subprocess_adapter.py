"""
Subprocess Adapter

Architectural Intent:
- Infrastructure adapter implementing CommandRunnerPort
- Uses subprocess for local commands, wrapped in async via run_in_executor
- Each command gets its own process group so a timeout kills the command
  and everything it spawned
- Shell strings exiting 126/127 raise LaunchError, the same way the remote
  executor reports a command its shell could not start
"""

import asyncio
import logging
import os
import signal
import subprocess
import time
from typing import Sequence, Union

from rollgate.domain.errors import LaunchError
from rollgate.domain.ports.command_runner_port import CommandRunnerPort
from rollgate.domain.value_objects.command_result import (
    CommandResult,
    LAUNCH_FAILURE_CODES,
    TIMED_OUT_STATUS,
)

logger = logging.getLogger(__name__)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class SubprocessCommandRunner(CommandRunnerPort):
    def __init__(self, shell: str = "bash"):
        self.shell = shell

    def _argv(self, command: Union[str, Sequence[str]]) -> list[str]:
        if isinstance(command, str):
            return [self.shell, "-c", command]
        argv = list(command)
        if not argv:
            raise ValueError("command cannot be empty")
        return argv

    async def run(
        self, command: Union[str, Sequence[str]], timeout: float
    ) -> CommandResult:
        argv = self._argv(command)
        result = await asyncio.get_running_loop().run_in_executor(
            None, self._run_blocking, argv, timeout
        )
        if isinstance(command, str) and result.exit_status in LAUNCH_FAILURE_CODES:
            detail = result.stderr.strip() or f"exit status {result.exit_status}"
            raise LaunchError(command, RuntimeError(detail))
        return result

    def _run_blocking(self, argv: list[str], timeout: float) -> CommandResult:
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise LaunchError(argv[0], e) from e

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Killing %r after %.1fs timeout", argv[0], timeout)
            self._kill(proc)
            stdout, stderr = proc.communicate()
            return CommandResult(
                exit_status=TIMED_OUT_STATUS,
                stdout=_text(stdout),
                stderr=_text(stderr),
                duration=time.monotonic() - started,
                timed_out=True,
            )

        duration = time.monotonic() - started
        logger.debug("%r exited %d in %.2fs", argv[0], proc.returncode, duration)
        return CommandResult(
            exit_status=proc.returncode,
            stdout=_text(stdout),
            stderr=_text(stderr),
            duration=duration,
        )

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            proc.kill()
