"""Tests for FabricAdapter."""

import pytest
from unittest.mock import patch, MagicMock

from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import AuthenticationException, SSHException

from rollgate.domain.errors import CommandLaunchError, HostConnectionError
from rollgate.domain.value_objects.credentials import Credentials
from rollgate.domain.value_objects.target_host import TargetHost
from rollgate.infrastructure.adapters.fabric_adapter import FabricAdapter

CONNECTION = "rollgate.infrastructure.adapters.fabric_adapter.Connection"


def _run_result(exited=0, stdout="", stderr=""):
    result = MagicMock()
    result.exited = exited
    result.stdout = stdout
    result.stderr = stderr
    result.failed = exited != 0
    return result


def _adapter(**kwargs):
    sleeps = []
    kwargs.setdefault("sleep", sleeps.append)
    return FabricAdapter(**kwargs), sleeps


class TestGetConnection:
    def test_builds_connection_from_target_and_credentials(self):
        adapter, _ = _adapter()
        host = TargetHost(host="10.0.0.1", user="root", port=2222)
        creds = Credentials(user="deploy", key_filename="/keys/id_ed25519", connect_timeout=7)

        with patch(CONNECTION) as mock_conn_cls:
            adapter._get_connection(host, creds)

        mock_conn_cls.assert_called_once_with(
            host="10.0.0.1",
            user="root",
            port=2222,
            connect_timeout=7,
            connect_kwargs={
                "allow_agent": True,
                "look_for_keys": True,
                "key_filename": "/keys/id_ed25519",
            },
        )

    def test_falls_back_to_credentials_user(self):
        adapter, _ = _adapter()
        with patch(CONNECTION) as mock_conn_cls:
            adapter._get_connection(TargetHost(host="web-1"), Credentials(user="deploy"))

        assert mock_conn_cls.call_args.kwargs["user"] == "deploy"
        assert "password" not in mock_conn_cls.call_args.kwargs["connect_kwargs"]

    def test_invalid_retry_count(self):
        with pytest.raises(ValueError, match="connect_retries"):
            FabricAdapter(connect_retries=0)


class TestRunRemote:
    @pytest.mark.asyncio
    async def test_success_returns_result_and_closes(self):
        adapter, _ = _adapter()
        conn = MagicMock()
        conn.run.return_value = _run_result(0, stdout="ok\n")

        with patch(CONNECTION, return_value=conn):
            result = await adapter.run_remote(
                TargetHost(host="web-1"), Credentials(), "echo ok", timeout=30
            )

        assert result.ok
        assert result.stdout == "ok\n"
        conn.open.assert_called_once()
        conn.run.assert_called_once_with(
            "echo ok", hide=True, warn=True, timeout=30, in_stream=False
        )
        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_result_not_retried(self):
        adapter, _ = _adapter()
        conn = MagicMock()
        conn.run.return_value = _run_result(1, stderr="npm ERR!")

        with patch(CONNECTION, return_value=conn):
            result = await adapter.run_remote(
                TargetHost(host="web-1"), Credentials(), "npm ci", timeout=30
            )

        assert result.exit_status == 1
        assert result.stderr == "npm ERR!"
        assert conn.run.call_count == 1
        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_connection_retried_with_backoff(self):
        adapter, sleeps = _adapter(connect_retries=3, retry_backoff=0.5)
        conn = MagicMock()
        conn.open.side_effect = [OSError("refused"), SSHException("banner"), None]
        conn.run.return_value = _run_result(0)

        with patch(CONNECTION, return_value=conn):
            result = await adapter.run_remote(
                TargetHost(host="web-1"), Credentials(), "true", timeout=30
            )

        assert result.ok
        assert conn.open.call_count == 3
        assert sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_connection_exhausted_raises(self):
        adapter, sleeps = _adapter(connect_retries=2, retry_backoff=1.0)
        conn = MagicMock()
        conn.open.side_effect = AuthenticationException("bad key")

        with patch(CONNECTION, return_value=conn):
            with pytest.raises(HostConnectionError) as exc_info:
                await adapter.run_remote(
                    TargetHost(host="web-1", user="deploy"), Credentials(), "true", timeout=30
                )

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.original_error, AuthenticationException)
        assert sleeps == [1.0]
        conn.run.assert_not_called()
        assert conn.close.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_returns_timed_out_result(self):
        adapter, _ = _adapter()
        conn = MagicMock()
        conn.run.side_effect = CommandTimedOut(_run_result(-1, stdout="partial"), 5)

        with patch(CONNECTION, return_value=conn):
            result = await adapter.run_remote(
                TargetHost(host="web-1"), Credentials(), "sleep 60", timeout=5
            )

        assert result.timed_out
        assert not result.ok
        assert result.stdout == "partial"
        conn.close.assert_called_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exit_code", [126, 127])
    async def test_not_executable_or_missing_is_launch_error(self, exit_code):
        adapter, _ = _adapter()
        conn = MagicMock()
        conn.run.return_value = _run_result(exit_code, stderr="bash: pm2: command not found")

        with patch(CONNECTION, return_value=conn):
            with pytest.raises(CommandLaunchError, match="pm2: command not found"):
                await adapter.run_remote(
                    TargetHost(host="web-1"), Credentials(), "pm2 restart app", timeout=30
                )

        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_channel_refused_is_launch_error(self):
        adapter, _ = _adapter()
        conn = MagicMock()
        conn.run.side_effect = SSHException("Channel closed.")

        with patch(CONNECTION, return_value=conn):
            with pytest.raises(CommandLaunchError):
                await adapter.run_remote(
                    TargetHost(host="web-1"), Credentials(), "true", timeout=30
                )

        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_drop_mid_command_not_retried(self):
        adapter, sleeps = _adapter()
        conn = MagicMock()
        conn.run.side_effect = EOFError()

        with patch(CONNECTION, return_value=conn):
            with pytest.raises(HostConnectionError) as exc_info:
                await adapter.run_remote(
                    TargetHost(host="web-1"), Credentials(), "npm ci", timeout=30
                )

        assert exc_info.value.attempts == 1
        assert conn.run.call_count == 1
        assert sleeps == []
        conn.close.assert_called_once()
