"""Tests for SubprocessCommandRunner."""

import sys
import time

import pytest

from rollgate.domain.errors import LaunchError
from rollgate.domain.value_objects.command_result import TIMED_OUT_STATUS
from rollgate.infrastructure.adapters.subprocess_adapter import SubprocessCommandRunner


class TestSubprocessCommandRunner:
    @pytest.mark.asyncio
    async def test_success_captures_stdout(self):
        result = await SubprocessCommandRunner().run("echo hello", timeout=10)

        assert result.ok
        assert result.exit_status == 0
        assert result.stdout.strip() == "hello"
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_result(self):
        result = await SubprocessCommandRunner().run("echo broken >&2; exit 3", timeout=10)

        assert not result.ok
        assert result.exit_status == 3
        assert result.stderr.strip() == "broken"

    @pytest.mark.asyncio
    async def test_argv_list_runs_without_shell(self):
        result = await SubprocessCommandRunner().run(
            [sys.executable, "-c", "print('argv')"], timeout=10
        )

        assert result.stdout.strip() == "argv"

    @pytest.mark.asyncio
    async def test_timeout_kills_command(self):
        started = time.monotonic()
        result = await SubprocessCommandRunner().run("sleep 30", timeout=0.3)

        assert result.timed_out
        assert result.exit_status == TIMED_OUT_STATUS
        assert not result.ok
        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_timeout_kills_child_processes(self):
        # The shell's child keeps stdout open; only a process-group kill returns promptly
        started = time.monotonic()
        result = await SubprocessCommandRunner().run("sleep 30 & wait", timeout=0.3)

        assert result.timed_out
        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_missing_binary_raises_launch_error(self):
        with pytest.raises(LaunchError) as exc_info:
            await SubprocessCommandRunner().run(["/nonexistent/rollgate-binary"], timeout=5)

        assert exc_info.value.command == "/nonexistent/rollgate-binary"
        assert isinstance(exc_info.value.original_error, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_missing_shell_raises_launch_error(self):
        with pytest.raises(LaunchError):
            await SubprocessCommandRunner(shell="/nonexistent/shell").run("true", timeout=5)

    @pytest.mark.asyncio
    async def test_empty_argv_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            await SubprocessCommandRunner().run([], timeout=5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "command",
        ["rollgate-no-such-command --version", "/dev/null"],
        ids=["not-found", "not-executable"],
    )
    async def test_shell_launch_failure_raises_launch_error(self, command):
        with pytest.raises(LaunchError) as exc_info:
            await SubprocessCommandRunner().run(command, timeout=10)

        assert exc_info.value.command == command

    @pytest.mark.asyncio
    async def test_argv_exit_127_is_a_result(self):
        result = await SubprocessCommandRunner().run(
            [sys.executable, "-c", "raise SystemExit(127)"], timeout=10
        )

        assert result.exit_status == 127
