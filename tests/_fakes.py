"""Scripted transport and probe fixtures shared by the test suite."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple, Union

from clawfleet.domain.diagnostics import (
    CheckCategory,
    CheckOutcome,
    DiagnosticReport,
    HealthCheck,
    ProbeDecoder,
    derive_state,
    split_probe_output,
)
from clawfleet.domain.instance import Instance
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import CommandResult, RemoteSession, RemoteTransport, script_operation

CID = "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"
OTHER_CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"
AID = "BKrJxkcR9m02Wp9xyzAbCdEfGhIjKlMnOpQrStUv"

READ_ONLY_OPS = {"diagnose", "bootstrap.probe", "config.show"}

Reply = Union[str, CommandResult, Exception, Callable[[str], Any]]

HEALTHY_BLOCKS: Dict[str, str] = {
    "gateway_process": "ok:18789",
    "health_endpoint": "ok:port=18789:12ms",
    "sessions": "ok:3_sessions",
    "config_valid": "ok:valid",
    "disk": "72",
    "memory": "64:36",
    "agent_cli": "ok:1.0.31 (Claude Code)",
    "agent_auth": "ok:active:root",
    "api_key": "200:sk-ant-api***",
    "user_mismatch": "root:root",
    "amcp_identity": f"ok:{AID}",
    "amcp_config": "ok:all_present",
    "last_checkpoint": f"{CID}:2h",
}

ALL_PRESENT: Dict[str, str] = {
    "installer": "ok",
    "amcp_cli": "ok:1.4.0",
    "proactive_amcp": "bin:2.1.0",
    "identity": f"exists:{AID}",
    "config": "complete",
    "watchdog": "active",
    "first_checkpoint": f"exists:{CID}",
}

ALL_MISSING: Dict[str, str] = {
    "installer": "ok",
    "amcp_cli": "missing",
    "proactive_amcp": "missing",
    "identity": "missing",
    "config": "missing",
    "watchdog": "inactive",
    "first_checkpoint": "missing",
}


def probe_output(**overrides: str) -> str:
    """Diagnostic probe stdout; pass ``check_id=None`` to drop a block."""

    blocks = dict(HEALTHY_BLOCKS)
    blocks.update(overrides)
    lines: List[str] = ["motd noise before the first block"]
    for check_id, value in blocks.items():
        if value is None:
            continue
        lines.append(f"---CHECK---{check_id}")
        lines.append(value)
    return "\n".join(lines) + "\n"


def bootstrap_probe(base: Dict[str, str] | None = None, **overrides: str) -> str:
    values = dict(base or ALL_PRESENT)
    values.update(overrides)
    return "\n".join(f"{key}:{value}" for key, value in values.items()) + "\n"


def checkpoint_output(*, principal: str = "root", body: str = "", exit_code: int = 0, fallback: str = "") -> str:
    return f"__PRINCIPAL__{principal}\n{body}\n__CKPT_EXIT__{exit_code}\n__FALLBACK_CID__{fallback}\n"


def config_echo(script: str) -> str:
    """Acknowledge every ``cfg_set`` call in a config script."""

    lines = []
    for line in script.splitlines():
        if line.startswith("cfg_set "):
            key = line.split()[1].strip("'")
            lines.append(f"__RESULT__ok:{key}")
    return "\n".join(lines) + "\n"


class FakeSession(RemoteSession):
    def __init__(self, transport: "FakeTransport", instance: Instance) -> None:
        self._transport = transport
        self.login_user = instance.ssh_user
        self.connect_ms = 12

    def run(self, script: str, timeout: float | None = None) -> CommandResult:
        operation = script_operation(script) or "<untagged>"
        self._transport.calls.append(operation)
        self._transport.scripts.append((operation, script))
        reply = self._transport.lookup(operation)
        if callable(reply) and not isinstance(reply, Exception):
            reply = reply(script)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, CommandResult):
            return reply
        return CommandResult(stdout=str(reply), exit_status=0)

    def upload(self, content: str, remote_path: str) -> None:
        self._transport.uploads.append((remote_path, content))

    def close(self) -> None:
        self._transport.closed += 1


class FakeTransport(RemoteTransport):
    """Replies keyed by operation header; ``"bootstrap.identity"`` also matches its sub-operations."""

    def __init__(self, replies: Dict[str, Reply] | None = None, *, open_error: Exception | None = None) -> None:
        self.replies: Dict[str, Reply] = dict(replies or {})
        self.open_error = open_error
        self.calls: List[str] = []
        self.scripts: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str]] = []
        self.opened: List[str] = []
        self.closed = 0

    def open(self, instance: Instance) -> FakeSession:
        self.opened.append(instance.name)
        if self.open_error is not None:
            raise self.open_error
        return FakeSession(self, instance)

    def lookup(self, operation: str) -> Reply:
        if operation in self.replies:
            return self.replies[operation]
        candidates = [key for key in self.replies if operation.startswith(key + ".")]
        if not candidates:
            raise AssertionError(f"unexpected remote operation: {operation}")
        return self.replies[max(candidates, key=len)]

    def mutating_calls(self) -> List[str]:
        return [operation for operation in self.calls if operation not in READ_ONLY_OPS]

    def script_for(self, operation: str) -> str:
        for name, script in self.scripts:
            if name == operation:
                return script
        raise AssertionError(f"operation {operation} was not run")


def register(repository: InstanceRepository, name: str = "alpha", **fields: Any) -> Instance:
    data: Dict[str, Any] = {"name": name, "ip": "203.0.113.10", "ssh_user": "root", "status": "healthy"}
    data.update(fields)
    instance = Instance.from_dict(data)
    repository.put(instance)
    return instance


def make_report(name: str = "alpha", **overrides: str) -> DiagnosticReport:
    """Decode ``probe_output(**overrides)`` into a report the way the service does."""

    ssh = HealthCheck("ssh", CheckCategory.CONNECTIVITY, CheckOutcome.OK, "Connected (root, 12ms)")
    checks = [ssh, *ProbeDecoder().decode_blocks(split_probe_output(probe_output(**overrides)))]
    return DiagnosticReport(
        instance=name,
        ip="203.0.113.10",
        timestamp="2026-10-18T09:00:00Z",
        checks=tuple(checks),
        overall_state=derive_state(checks),
    )
