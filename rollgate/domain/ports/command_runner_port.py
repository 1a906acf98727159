"""
Command Runner Port

Architectural Intent:
- Port interface for running a command on the local machine
- Enforces a timeout by killing the command, reported as timed_out
- Implemented by SubprocessCommandRunner
"""

from abc import ABC, abstractmethod
from typing import Sequence, Union
from rollgate.domain.value_objects.command_result import CommandResult


class CommandRunnerPort(ABC):
    """
    Port interface for executing local commands.
    """

    @abstractmethod
    async def run(
        self, command: Union[str, Sequence[str]], timeout: float
    ) -> CommandResult:
        """
        Runs an argv sequence, or a shell string through bash.
        Non-zero exit is returned, not raised.
        Raises LaunchError if the command cannot be started, including a
        shell string whose shell exits 126 or 127.
        """
        pass
