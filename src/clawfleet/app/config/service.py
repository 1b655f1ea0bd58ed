"""Show, set and push proactive-amcp configuration on a child."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Tuple

from clawfleet.domain.errors import ActionFailed, ConfigError
from clawfleet.domain.instance import Instance
from clawfleet.domain.markers import iter_outcomes
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import RemoteSession, RemoteTransport, tag_script
from clawfleet.resources import load_text

# Local credentials key -> remote config key.
KEY_MAPPING: Tuple[Tuple[str, str], ...] = (
    ("pinata_jwt", "pinata_jwt"),
    ("anthropic_api_key", "anthropic.apiKey"),
    ("solvr_api_key", "solvr_api_key"),
    ("parent_telegram_bot_token", "parent_bot_token"),
    ("parent_telegram_chat_id", "parent_chat_id"),
    ("agentmail_api_key", "notify.agentmailApiKey"),
    ("notify_email", "notify.emailTo"),
)

SHOW_KEYS: Tuple[str, ...] = (
    "pinata_jwt",
    "anthropic.apiKey",
    "solvr_api_key",
    "instance_name",
    "parent_bot_token",
    "parent_chat_id",
    "notify.emailTo",
    "notify.agentmailApiKey",
    "notify.agentmailInbox",
    "watchdog.interval",
    "checkpoint.schedule",
)

SECRET_KEYS = frozenset(
    {"pinata_jwt", "anthropic.apiKey", "solvr_api_key", "parent_bot_token", "notify.agentmailApiKey"}
)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*$")
_CFG_PREFIX = "__CFG__"

CredentialsLoader = Callable[[], Mapping[str, str]]


def mask_value(key: str, value: str) -> str:
    if key not in SECRET_KEYS or len(value) <= 4:
        return value
    return f"{value[:4]}***"


@dataclass(frozen=True)
class PushResult:
    instance: str
    pushed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.pushed) and not self.failed

    def to_dict(self) -> Dict[str, object]:
        return {
            "instance": self.instance,
            "pushed": list(self.pushed),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }


@dataclass(frozen=True)
class SetResult:
    instance: str
    key: str
    applied: bool
    verified: bool
    readback: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "instance": self.instance,
            "key": self.key,
            "applied": self.applied,
            "verified": self.verified,
            "readback": self.readback,
        }


@dataclass(frozen=True)
class ConfigView:
    instance: str
    values: Dict[str, str]

    def to_dict(self) -> Dict[str, object]:
        return {"instance": self.instance, "config": dict(self.values)}


def _validate_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise ConfigError(f"invalid config key: {key!r}")
    return key


def _script(operation: str, calls: Iterable[str]) -> str:
    return tag_script(operation, load_text("scripts/config_functions.sh") + "\n" + "\n".join(calls) + "\n")


def _read_values(stdout: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for line in stdout.splitlines():
        if line.startswith(_CFG_PREFIX):
            key, _, value = line[len(_CFG_PREFIX):].partition("=")
            values[key] = value.strip()
    return values


class ConfigService:
    def __init__(self, repository: InstanceRepository, transport: RemoteTransport, credentials: CredentialsLoader) -> None:
        self._repository = repository
        self._transport = transport
        self._credentials = credentials

    def show(self, name: str) -> ConfigView:
        instance = self._repository.get(name)
        calls = [f"cfg_get {shlex.quote(key)}" for key in SHOW_KEYS]
        with self._transport.open(instance) as session:
            stdout = session.run(_script("config.show", calls)).stdout
        self._raise_on_global_failure(stdout)
        raw = _read_values(stdout)
        values = {key: mask_value(key, raw.get(key, "")) for key in SHOW_KEYS}
        return ConfigView(instance=instance.name, values=values)

    def set(self, name: str, key: str, value: str) -> SetResult:
        _validate_key(key)
        instance = self._repository.get(name)
        calls = [
            f"cfg_set {shlex.quote(key)} {shlex.quote(value)}",
            f"cfg_get {shlex.quote(key)}",
        ]
        with self._transport.open(instance) as session:
            stdout = session.run(_script("config.set", calls)).stdout
        self._raise_on_global_failure(stdout)
        applied = any(outcome.ok and outcome.data == key for outcome in iter_outcomes(stdout))
        readback = _read_values(stdout).get(key, "")
        return SetResult(
            instance=instance.name,
            key=key,
            applied=applied,
            verified=applied and readback == value,
            readback=mask_value(key, readback),
        )

    def push(self, name: str) -> PushResult:
        instance = self._repository.get(name)
        with self._transport.open(instance) as session:
            return self.push_in_session(instance, session)

    def push_in_session(self, instance: Instance, session: RemoteSession) -> PushResult:
        """Push every mapped credential plus ``instance_name`` in one batch."""

        credentials = self._credentials()
        assignments: List[Tuple[str, str]] = []
        skipped: List[str] = []
        for local_key, remote_key in KEY_MAPPING:
            value = credentials.get(local_key)
            if value:
                assignments.append((remote_key, value))
            else:
                skipped.append(remote_key)
        assignments.append(("instance_name", instance.name))

        calls = [f"cfg_set {shlex.quote(key)} {shlex.quote(value)}" for key, value in assignments]
        stdout = session.run(_script("config.push", calls)).stdout
        self._raise_on_global_failure(stdout)

        ok_keys = {outcome.data for outcome in iter_outcomes(stdout) if outcome.ok}
        pushed = [key for key, _ in assignments if key in ok_keys]
        failed = [key for key, _ in assignments if key not in ok_keys]
        return PushResult(instance=instance.name, pushed=pushed, skipped=skipped, failed=failed)

    def _raise_on_global_failure(self, stdout: str) -> None:
        for outcome in iter_outcomes(stdout):
            if not outcome.ok and not _KEY_PATTERN.match(outcome.data):
                raise ActionFailed("config", outcome.reason)


__all__ = [
    "ConfigService",
    "ConfigView",
    "KEY_MAPPING",
    "PushResult",
    "SECRET_KEYS",
    "SHOW_KEYS",
    "SetResult",
    "mask_value",
]
