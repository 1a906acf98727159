"""
Remote Executor Port

Architectural Intent:
- Port interface for executing commands on a remote host
- Owns the session lifecycle: open, run, always close
- Implemented by adapters (Fabric/SSH)
"""

from abc import ABC, abstractmethod
from rollgate.domain.value_objects.command_result import CommandResult
from rollgate.domain.value_objects.credentials import Credentials
from rollgate.domain.value_objects.target_host import TargetHost


class RemoteExecutorPort(ABC):
    """
    Port interface for executing commands on remote infrastructure.
    """

    @abstractmethod
    async def run_remote(
        self,
        host: TargetHost,
        credentials: Credentials,
        command: str,
        timeout: float,
    ) -> CommandResult:
        """
        Runs a command on the host and returns its result.

        Raises HostConnectionError when the host cannot be reached after
        retries, CommandLaunchError when the session is up but the command
        cannot start. A command that ran and failed is a normal result.
        """
        pass
