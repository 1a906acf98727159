"""
Deploy Stage Use Case

Architectural Intent:
- Ships a deployment reference to one host: fetch, install, restart
- Sub-steps run in strict order and stop at the first failure
- Nothing is retried here; a half-applied deploy is surfaced to the
  RolloutController as-is
- Local targets (localhost) run through the CommandRunnerPort, every other
  target through the RemoteExecutorPort

Security:
- Reference, app directory and process name are quoted via shlex.quote()
  before being substituted into command templates
"""

from __future__ import annotations
import logging
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rollgate.application.dtos.rollout_dtos import RolloutRequest
from rollgate.domain.ports.command_runner_port import CommandRunnerPort
from rollgate.domain.ports.remote_executor_port import RemoteExecutorPort
from rollgate.domain.value_objects.command_result import CommandResult
from rollgate.domain.value_objects.credentials import Credentials
from rollgate.domain.value_objects.deployment_ref import DeploymentRef
from rollgate.domain.value_objects.target_host import TargetHost

logger = logging.getLogger(__name__)


class DeployStep(Enum):
    FETCH = "fetch"
    INSTALL = "install"
    RESTART = "restart"


DEPLOY_ORDER = (DeployStep.FETCH, DeployStep.INSTALL, DeployStep.RESTART)


@dataclass(frozen=True)
class DeployCommands:
    """Shell templates for each sub-step.

    Placeholders: {app_dir}, {ref}, {process}.
    """
    app_dir: str = "/srv/app"
    process: str = "app"
    fetch: str = (
        "cd {app_dir} && git fetch --all --tags --prune && git checkout --force {ref}"
        " && if git show-ref --verify --quiet refs/remotes/origin/{ref}; then"
        " git reset --hard origin/{ref}; fi"
    )
    install: str = "cd {app_dir} && npm ci --omit=dev"
    restart: str = "pm2 restart {process} --update-env"
    current: str = "cd {app_dir} && git rev-parse HEAD"

    def render(self, template: str, reference: Optional[str] = None) -> str:
        return template.format(
            app_dir=shlex.quote(self.app_dir),
            process=shlex.quote(self.process),
            ref=shlex.quote(reference or ""),
        )

    def for_step(self, step: DeployStep, reference: str) -> str:
        return self.render(getattr(self, step.value), reference)


@dataclass(frozen=True)
class DeployResult:
    """Outcome of a deploy: the last sub-step that ran and its result."""
    reference: str
    step: DeployStep
    result: CommandResult
    completed: tuple[DeployStep, ...] = ()

    @property
    def ok(self) -> bool:
        return self.result.ok and self.step is DeployStep.RESTART

    @property
    def failed_step(self) -> Optional[DeployStep]:
        return None if self.ok else self.step

    def describe(self) -> str:
        if self.ok:
            return f"deployed {self.reference}"
        return f"{self.step.value} of {self.reference} failed: {self.result.describe()}"


class DeployStage:
    def __init__(
        self,
        remote_executor: RemoteExecutorPort,
        command_runner: CommandRunnerPort,
        credentials: Credentials,
        commands: Optional[DeployCommands] = None,
        command_timeout: float = 300.0,
    ):
        self.remote_executor = remote_executor
        self.command_runner = command_runner
        self.credentials = credentials
        self.commands = commands or DeployCommands()
        self.command_timeout = command_timeout

    async def _run(self, target: TargetHost, command: str) -> CommandResult:
        if target.is_local:
            return await self.command_runner.run(command, self.command_timeout)
        return await self.remote_executor.run_remote(
            target, self.credentials, command, self.command_timeout
        )

    async def deploy(
        self, request: RolloutRequest, reference: Optional[str] = None
    ) -> DeployResult:
        """
        Deploys request.reference, or an explicit reference (rollback).
        Connection and launch errors propagate to the caller.
        """
        ref = str(DeploymentRef(reference or request.reference))
        target = request.target
        completed: list[DeployStep] = []
        result = CommandResult(exit_status=0)
        step = DEPLOY_ORDER[0]

        for step in DEPLOY_ORDER:
            command = self.commands.for_step(step, ref)
            logger.info("[%s] %s %s", target.identifier, step.value, ref)
            logger.debug("[%s] $ %s", target.identifier, command)
            result = await self._run(target, command)
            if not result.ok:
                logger.error(
                    "[%s] %s of %s failed: %s",
                    target.identifier,
                    step.value,
                    ref,
                    result.describe(),
                )
                return DeployResult(ref, step, result, tuple(completed))
            completed.append(step)

        logger.info("[%s] deployed %s", target.identifier, ref)
        return DeployResult(ref, step, result, tuple(completed))

    async def current_reference(self, request: RolloutRequest) -> Optional[str]:
        """Commit currently checked out on the host, or None if unknown."""
        result = await self._run(request.target, self.commands.render(self.commands.current))
        if not result.ok:
            logger.warning(
                "[%s] cannot read current reference: %s",
                request.host_id,
                result.describe(),
            )
            return None
        value = result.stdout.strip()
        try:
            return str(DeploymentRef(value))
        except ValueError:
            logger.warning("[%s] unexpected current reference %r", request.host_id, value)
            return None
