"""Tests for composition root wiring."""

from rollgate.composition_root import RollgateContainer, create_container
from rollgate.application.use_cases.rollout_controller import RolloutController
from rollgate.domain.entities.rollout import RolloutFinishedEvent
from rollgate.infrastructure.adapters.fabric_adapter import FabricAdapter
from rollgate.infrastructure.adapters.http_probe_adapter import HttpProbeAdapter
from rollgate.infrastructure.config import (
    DeployConfig,
    HistoryConfig,
    ProbeConfig,
    RollgateConfig,
    SSHConfig,
)
from rollgate.infrastructure.repositories.sqlite_repository import SQLiteRepository


def _config(tmp_path, **sections):
    sections.setdefault("history", HistoryConfig(db_path=str(tmp_path / "h.db")))
    return RollgateConfig(**sections)


class TestCompositionRoot:
    def test_create_container(self, tmp_path):
        container = create_container(_config(tmp_path))
        try:
            assert isinstance(container, RollgateContainer)
            assert isinstance(container.fabric_adapter, FabricAdapter)
            assert isinstance(container.http_probe, HttpProbeAdapter)
            assert isinstance(container.controller, RolloutController)
            assert isinstance(container.repository, SQLiteRepository)
            assert container.controller.history is container.repository
            assert container.controller.event_bus is container.event_bus
        finally:
            container.close()

    def test_finished_event_handlers_subscribed(self, tmp_path):
        container = create_container(_config(tmp_path))
        try:
            handlers = container.event_bus._handlers[RolloutFinishedEvent]
            assert len(handlers) == 2
        finally:
            container.close()

    def test_history_disabled(self, tmp_path):
        container = create_container(_config(tmp_path, history=HistoryConfig(enabled=False)))

        assert container.repository is None
        assert container.controller.history is None
        assert not (tmp_path / "rollgate.db").exists()

    def test_ssh_settings_applied(self, tmp_path):
        config = _config(
            tmp_path,
            ssh=SSHConfig(user="ops", key_filename="/keys/id", connect_retries=5, retry_backoff=0.25),
        )
        container = create_container(config)
        try:
            assert container.fabric_adapter.connect_retries == 5
            assert container.fabric_adapter.retry_backoff == 0.25
            creds = container.deploy_stage.credentials
            assert creds.user == "ops"
            assert creds.key_filename == "/keys/id"
            assert creds.password is None
        finally:
            container.close()

    def test_deploy_templates_override_defaults(self, tmp_path):
        config = _config(
            tmp_path,
            deploy=DeployConfig(
                app_dir="/srv/shop",
                restart_command="systemctl restart {process}",
                process="shop",
                command_timeout=45,
            ),
        )
        container = create_container(config)
        try:
            commands = container.deploy_stage.commands
            assert commands.app_dir == "/srv/shop"
            assert commands.restart == "systemctl restart {process}"
            assert "npm ci" in commands.install
            assert container.deploy_stage.command_timeout == 45
        finally:
            container.close()

    def test_probe_settings_applied(self, tmp_path):
        config = _config(
            tmp_path,
            probe=ProbeConfig(success_token="ready", success_statuses=("200", "204"), request_timeout=2),
        )
        container = create_container(config)
        try:
            assert container.http_probe.success_token == "ready"
            assert container.http_probe.success_statuses == frozenset({200, 204})
            assert container.prober.request_timeout == 2
        finally:
            container.close()
