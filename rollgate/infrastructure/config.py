"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to SSH, deploy, probe and history settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Credentials are read here but never written anywhere
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SSHConfig:
    """Remote executor settings."""
    user: str = "deploy"
    key_filename: str = ""
    password: str = field(default="", repr=False)
    connect_timeout: float = 10.0
    connect_retries: int = 3
    retry_backoff: float = 1.0


@dataclass(frozen=True)
class DeployConfig:
    """Deploy stage command templates and limits."""
    app_dir: str = "/srv/app"
    process: str = "app"
    fetch_command: str = ""
    install_command: str = ""
    restart_command: str = ""
    current_command: str = ""
    command_timeout: float = 300.0


@dataclass(frozen=True)
class ProbeConfig:
    """Health prober settings."""
    endpoint: str = ""
    interval: float = 2.0
    timeout: float = 60.0
    max_attempts: int = 30
    request_timeout: float = 5.0
    success_token: str = "OK"
    success_statuses: tuple[str, ...] = ("200",)
    verify_tls: bool = True


@dataclass(frozen=True)
class HistoryConfig:
    """Rollout history storage."""
    db_path: str = "rollgate.db"
    enabled: bool = True


@dataclass(frozen=True)
class RollgateConfig:
    """Root configuration for rollgate."""
    ssh: SSHConfig = field(default_factory=SSHConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    log_level: str = "WARNING"

    @property
    def status_codes(self) -> tuple[int, ...]:
        return tuple(int(s) for s in self.probe.success_statuses)


def _env_override(data: dict, prefix: str = "ROLLGATE") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern ROLLGATE_SECTION_KEY.
    For example: ROLLGATE_PROBE_INTERVAL=5, ROLLGATE_SSH_KEY_FILENAME=~/.ssh/id_ed25519
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        parts = key[len(prefix) + 1:].lower().split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        else:
            data["_".join(parts)] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a JSON object", path)
        return {}
    return data


def _coerce(type_name: str, value):
    if type_name == "tuple[str, ...]":
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        return tuple(str(v) for v in value)
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value)
    if type_name == "float":
        return float(value)
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes", "on")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name: f.type for f in dataclasses.fields(cls)}
    built = {}
    for name, value in data.items():
        if name not in valid_fields:
            logger.debug("Ignoring unknown %s key: %s", cls.__name__, name)
            continue
        try:
            built[name] = _coerce(valid_fields[name], value)
        except ValueError:
            logger.warning("Invalid value for %s.%s: %r, using default", cls.__name__, name, value)
    return cls(**built)


_SECTIONS = {
    "ssh": SSHConfig,
    "deploy": DeployConfig,
    "probe": ProbeConfig,
    "history": HistoryConfig,
}


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "ROLLGATE",
) -> RollgateConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (ROLLGATE_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to rollgate.json in CWD.
        env_prefix: Environment variable prefix. Defaults to ROLLGATE.
    """
    config_path = Path(path) if path else Path("rollgate.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return RollgateConfig(log_level=str(data.get("log_level", "WARNING")), **sections)
