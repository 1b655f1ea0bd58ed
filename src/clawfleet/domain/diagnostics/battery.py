"""The fixed diagnostic battery and the probe wire format."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from .value_objects import CheckCategory

PROBE_VERSION = "3"
CHECK_DELIMITER = "---CHECK---"
SSH_CHECK = "ssh"


@dataclass(frozen=True)
class CheckSpec:
    check_id: str
    category: CheckCategory
    label: str


# Battery order is also report order.
BATTERY: Tuple[CheckSpec, ...] = (
    CheckSpec(SSH_CHECK, CheckCategory.CONNECTIVITY, "SSH"),
    CheckSpec("gateway_process", CheckCategory.CONNECTIVITY, "Gateway process"),
    CheckSpec("health_endpoint", CheckCategory.CONNECTIVITY, "Health endpoint"),
    CheckSpec("api_key", CheckCategory.AUTHENTICATION, "Anthropic API key"),
    CheckSpec("agent_cli", CheckCategory.AUTHENTICATION, "Agent CLI"),
    CheckSpec("agent_auth", CheckCategory.AUTHENTICATION, "Agent auth"),
    CheckSpec("user_mismatch", CheckCategory.AUTHENTICATION, "Service user"),
    CheckSpec("amcp_identity", CheckCategory.AMCP, "AMCP identity"),
    CheckSpec("amcp_config", CheckCategory.AMCP, "AMCP config"),
    CheckSpec("last_checkpoint", CheckCategory.AMCP, "Last checkpoint"),
    CheckSpec("disk", CheckCategory.SYSTEM, "Disk space"),
    CheckSpec("memory", CheckCategory.SYSTEM, "Memory"),
    CheckSpec("config_valid", CheckCategory.SYSTEM, "Config JSON"),
    CheckSpec("sessions", CheckCategory.SYSTEM, "Sessions"),
)

BATTERY_BY_ID: Dict[str, CheckSpec] = {spec.check_id: spec for spec in BATTERY}

REMOTE_CHECKS: Tuple[CheckSpec, ...] = tuple(spec for spec in BATTERY if spec.check_id != SSH_CHECK)


def split_probe_output(stdout: str) -> Dict[str, str]:
    """Split probe stdout into ``{check_id: block}`` with one sequential scan.

    Text before the first delimiter is ignored. A repeated delimiter keeps the
    first block seen for that id.
    """

    blocks: Dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in stdout.splitlines():
        if line.startswith(CHECK_DELIMITER):
            check_id = line[len(CHECK_DELIMITER):].strip()
            if check_id in blocks:
                current = None
                continue
            current = blocks.setdefault(check_id, [])
            continue
        if current is not None:
            current.append(line)
    return {check_id: "\n".join(lines).strip() for check_id, lines in blocks.items()}


__all__ = [
    "BATTERY",
    "BATTERY_BY_ID",
    "CHECK_DELIMITER",
    "CheckSpec",
    "PROBE_VERSION",
    "REMOTE_CHECKS",
    "SSH_CHECK",
    "split_probe_output",
]
