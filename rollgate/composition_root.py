"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the rollgate application
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from RollgateConfig
- History storage is optional; without it the known-good reference falls
  back to the request and the host's checked-out commit
"""

from dataclasses import dataclass
from typing import Optional

from rollgate.application.use_cases.deploy_stage import DeployCommands, DeployStage
from rollgate.application.use_cases.probe_health import HealthProber
from rollgate.application.use_cases.rollout_controller import RolloutController
from rollgate.domain.entities.rollout import RolloutFinishedEvent
from rollgate.domain.value_objects.credentials import Credentials
from rollgate.infrastructure.adapters.fabric_adapter import FabricAdapter
from rollgate.infrastructure.adapters.http_probe_adapter import HttpProbeAdapter
from rollgate.infrastructure.adapters.subprocess_adapter import SubprocessCommandRunner
from rollgate.infrastructure.config import DeployConfig, RollgateConfig, SSHConfig
from rollgate.infrastructure.event_bus import EventBus
from rollgate.infrastructure.logging import log_rollout_record
from rollgate.infrastructure.repositories.sqlite_repository import SQLiteRepository


@dataclass
class RollgateContainer:
    """DI container holding all wired dependencies."""

    config: RollgateConfig
    command_runner: SubprocessCommandRunner
    fabric_adapter: FabricAdapter
    http_probe: HttpProbeAdapter
    event_bus: EventBus
    deploy_stage: DeployStage
    prober: HealthProber
    controller: RolloutController
    repository: Optional[SQLiteRepository] = None

    def close(self) -> None:
        if self.repository is not None:
            self.repository.close()


def _credentials(ssh: SSHConfig) -> Credentials:
    return Credentials(
        user=ssh.user,
        key_filename=ssh.key_filename or None,
        password=ssh.password or None,
        connect_timeout=ssh.connect_timeout,
    )


def _deploy_commands(deploy: DeployConfig) -> DeployCommands:
    overrides = {
        "fetch": deploy.fetch_command,
        "install": deploy.install_command,
        "restart": deploy.restart_command,
        "current": deploy.current_command,
    }
    return DeployCommands(
        app_dir=deploy.app_dir,
        process=deploy.process,
        **{name: template for name, template in overrides.items() if template},
    )


def create_container(config: Optional[RollgateConfig] = None) -> RollgateContainer:
    """Create and wire all dependencies."""
    config = config or RollgateConfig()

    command_runner = SubprocessCommandRunner()
    fabric_adapter = FabricAdapter(
        connect_retries=config.ssh.connect_retries,
        retry_backoff=config.ssh.retry_backoff,
    )
    http_probe = HttpProbeAdapter(
        success_token=config.probe.success_token,
        success_statuses=config.status_codes,
        verify_tls=config.probe.verify_tls,
    )
    event_bus = EventBus()

    repository = None
    if config.history.enabled:
        repository = SQLiteRepository(config.history.db_path)
        repository.connect()
        event_bus.subscribe(RolloutFinishedEvent, repository.handle_rollout_finished)
    event_bus.subscribe(RolloutFinishedEvent, log_rollout_record)

    deploy_stage = DeployStage(
        fabric_adapter,
        command_runner,
        _credentials(config.ssh),
        commands=_deploy_commands(config.deploy),
        command_timeout=config.deploy.command_timeout,
    )
    prober = HealthProber(http_probe, request_timeout=config.probe.request_timeout)
    controller = RolloutController(
        deploy_stage,
        prober,
        event_bus=event_bus,
        history=repository,
    )

    return RollgateContainer(
        config=config,
        command_runner=command_runner,
        fabric_adapter=fabric_adapter,
        http_probe=http_probe,
        event_bus=event_bus,
        deploy_stage=deploy_stage,
        prober=prober,
        controller=controller,
        repository=repository,
    )
