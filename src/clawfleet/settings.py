"""Runtime settings and fleet policy for clawfleet."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from clawfleet import __version__
from clawfleet.domain.errors import ConfigError
from clawfleet.domain.remediation import RetryPolicy
from clawfleet.resources import load_text

HOME_ENV = "CLAWFLEET_HOME"


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    instances_dir: Path
    log_dir: Path
    cli_version: str = __version__

    @property
    def credentials_file(self) -> Path:
        return self.instances_dir / "credentials.json"

    @property
    def policy_file(self) -> Path:
        return self.home_dir / "policy.yaml"


@dataclass(frozen=True)
class TransportPolicy:
    connect_timeout: float = 10.0
    command_timeout: float = 120.0


@dataclass(frozen=True)
class FleetRunPolicy:
    max_workers: int = 8
    timeout: float = 300.0


@dataclass(frozen=True)
class KnowledgePolicy:
    api_url: str = "https://api.solvr.dev/v1"
    timeout: float = 15.0


@dataclass(frozen=True)
class FleetPolicy:
    transport: TransportPolicy = field(default_factory=TransportPolicy)
    fleet: FleetRunPolicy = field(default_factory=FleetRunPolicy)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    knowledge: KnowledgePolicy = field(default_factory=KnowledgePolicy)
    stale_checkpoint_hours: int = 24
    watchdog_interval: int = 120

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FleetPolicy":
        try:
            transport = _section(data, "transport")
            fleet = _section(data, "fleet")
            knowledge = _section(data, "knowledge")
            policy = cls(
                transport=TransportPolicy(
                    connect_timeout=float(transport.get("connect_timeout", 10)),
                    command_timeout=float(transport.get("command_timeout", 120)),
                ),
                fleet=FleetRunPolicy(
                    max_workers=int(fleet.get("max_workers", 8)),
                    timeout=float(fleet.get("timeout", 300)),
                ),
                retry=RetryPolicy.from_dict(_section(data, "remediation")),
                knowledge=KnowledgePolicy(
                    api_url=str(knowledge.get("api_url", KnowledgePolicy.api_url)).rstrip("/"),
                    timeout=float(knowledge.get("timeout", 15)),
                ),
                stale_checkpoint_hours=int(_section(data, "diagnostics").get("stale_checkpoint_hours", 24)),
                watchdog_interval=int(_section(data, "bootstrap").get("watchdog_interval", 120)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid fleet policy: {exc}") from exc
        if policy.fleet.max_workers < 1:
            raise ConfigError("invalid fleet policy: fleet.max_workers must be >= 1")
        if policy.transport.connect_timeout <= 0 or policy.transport.command_timeout <= 0:
            raise ConfigError("invalid fleet policy: transport timeouts must be positive")
        return policy


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"invalid fleet policy: '{name}' must be a mapping")
    return dict(value)


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def load_policy(settings: RuntimeSettings) -> FleetPolicy:
    """Packaged defaults overlaid with ``<home>/policy.yaml`` when present."""

    data: Dict[str, Any] = yaml.safe_load(load_text("default_policy.yaml")) or {}
    path = settings.policy_file
    if path.exists():
        try:
            override = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc
        if not isinstance(override, Mapping):
            raise ConfigError(f"{path} must contain a mapping")
        data = _merge(data, override)
    return FleetPolicy.from_dict(data)


def _default_home_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".clawfleet"


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(
        home_dir=base,
        instances_dir=base / "instances",
        log_dir=base / "logs",
    )


SETTINGS = load_settings()
