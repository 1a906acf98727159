"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the rollout core needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from rollgate.domain.ports.command_runner_port import CommandRunnerPort
from rollgate.domain.ports.remote_executor_port import RemoteExecutorPort
from rollgate.domain.ports.health_check_port import HealthCheckPort
from rollgate.domain.ports.rollout_history_port import RolloutHistoryPort
from rollgate.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "CommandRunnerPort",
    "RemoteExecutorPort",
    "HealthCheckPort",
    "RolloutHistoryPort",
    "EventBusPort",
]
