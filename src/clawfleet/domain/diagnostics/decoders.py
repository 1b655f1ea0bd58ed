"""Per-check decoders turning raw probe lines into health checks.

Each decoder receives the first non-empty line of its probe block and returns
``(outcome, detail)``. Anything outside a check's grammar raises ``ValueError``
which :class:`ProbeDecoder` reports as ``MalformedProbeOutput``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Tuple

from clawfleet.domain.errors import MalformedProbeOutput

from .battery import BATTERY_BY_ID, REMOTE_CHECKS
from .value_objects import CheckOutcome, HealthCheck

UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class DecodeOptions:
    stale_after_hours: int = 24


Decoded = Tuple[CheckOutcome, str]
DecodeFn = Callable[[str, DecodeOptions], Decoded]


def mask_secret(value: str, keep: int = 10) -> str:
    if value.endswith("***"):
        return value[: keep + 3]
    return f"{value[:keep]}***"


def short_handle(value: str, keep: int) -> str:
    return value if len(value) <= keep else f"{value[:keep]}..."


def _decode_gateway(raw: str, options: DecodeOptions) -> Decoded:
    status, _, rest = raw.partition(":")
    if status == "ok":
        return CheckOutcome.OK, f"Port {rest or 'unknown'}"
    if status == "error":
        return CheckOutcome.ERROR, "Not running" if rest in ("", "not_running") else rest
    raise ValueError(raw)


def _decode_health(raw: str, options: DecodeOptions) -> Decoded:
    status, _, rest = raw.partition(":")
    if status == "ok":
        port, _, latency = rest.partition(":")
        if not port.startswith("port="):
            raise ValueError(raw)
        return CheckOutcome.OK, f"Port {port[5:]} ({latency or 'n/a'})"
    if status == "error":
        return CheckOutcome.ERROR, "No health endpoint responding"
    raise ValueError(raw)


def _decode_sessions(raw: str, options: DecodeOptions) -> Decoded:
    status, _, rest = raw.partition(":")
    if status == "ok":
        if rest == "no_sessions_dir":
            return CheckOutcome.OK, "No sessions directory"
        count = rest.removesuffix("_sessions")
        if not count.isdigit():
            raise ValueError(raw)
        return CheckOutcome.OK, f"{count} sessions"
    if status == "warn":
        ratio = rest.removesuffix("_corrupt")
        corrupt, sep, total = ratio.partition("/")
        if not (sep and corrupt.isdigit() and total.isdigit()):
            raise ValueError(raw)
        return CheckOutcome.WARN, f"{corrupt}/{total} sessions corrupt"
    if status == "error":
        return CheckOutcome.ERROR, rest or "Check failed"
    raise ValueError(raw)


def _decode_config_valid(raw: str, options: DecodeOptions) -> Decoded:
    mapping = {
        "ok:valid": (CheckOutcome.OK, "Valid JSON"),
        "warn:no_config": (CheckOutcome.WARN, "No config file"),
        "error:invalid_json": (CheckOutcome.ERROR, "Invalid JSON"),
    }
    if raw not in mapping:
        raise ValueError(raw)
    return mapping[raw]


def _percentage(value: str) -> int:
    number = int(value)
    if not 0 <= number <= 100:
        raise ValueError(value)
    return number


def _decode_disk(raw: str, options: DecodeOptions) -> Decoded:
    free = _percentage(raw)
    detail = f"{free}% free"
    if free > 50:
        return CheckOutcome.OK, detail
    if free > 20:
        return CheckOutcome.WARN, detail
    return CheckOutcome.ERROR, detail


def _decode_memory(raw: str, options: DecodeOptions) -> Decoded:
    available, _, used = raw.partition(":")
    avail = _percentage(available)
    detail = f"{avail}% available"
    if used and used.isdigit():
        detail += f" ({used}% used)"
    if avail > 20:
        return CheckOutcome.OK, detail
    if avail > 10:
        return CheckOutcome.WARN, detail
    return CheckOutcome.ERROR, detail


def _decode_agent_cli(raw: str, options: DecodeOptions) -> Decoded:
    status, _, rest = raw.partition(":")
    if status == "ok":
        return CheckOutcome.OK, rest or "installed"
    if raw == "warn:not_installed":
        return CheckOutcome.WARN, "Not installed"
    raise ValueError(raw)


def _decode_agent_auth(raw: str, options: DecodeOptions) -> Decoded:
    parts = raw.split(":")
    if len(parts) < 3:
        raise ValueError(raw)
    status, state, user = parts[0], parts[1], parts[2]
    if status == "ok" and state == "active":
        return CheckOutcome.OK, f"Active ({user})"
    if status == "warn":
        labels = {
            "expired": "Auth expired or failing",
            "no_credentials": "No credentials",
            "timeout": "Auth check timed out",
        }
        return CheckOutcome.WARN, f"{labels.get(state, 'Unknown auth state')} ({user})"
    raise ValueError(raw)


def _decode_api_key(raw: str, options: DecodeOptions) -> Decoded:
    code, sep, masked = raw.partition(":")
    if not sep:
        raise ValueError(raw)
    if code == "missing":
        return CheckOutcome.ERROR, "No API key found"
    if not code.isdigit():
        raise ValueError(raw)
    prefix = mask_secret(masked) if masked else "***"
    if code == "200":
        return CheckOutcome.OK, f"Valid ({prefix})"
    if code == "401":
        return CheckOutcome.ERROR, f"Invalid key (401) {prefix}"
    if code == "402":
        return CheckOutcome.ERROR, f"Billing issue (402) {prefix}"
    if code == "429":
        return CheckOutcome.WARN, f"Rate limited (429) {prefix}"
    return CheckOutcome.WARN, f"HTTP {code} {prefix}"


def _decode_user_mismatch(raw: str, options: DecodeOptions) -> Decoded:
    login, sep, service = raw.partition(":")
    if not sep or not login:
        raise ValueError(raw)
    if not service or service == login:
        return CheckOutcome.OK, f"User: {login}"
    return CheckOutcome.WARN, f"Login user '{login}' differs from service user '{service}'"


def _decode_identity(raw: str, options: DecodeOptions) -> Decoded:
    parts = raw.split(":")
    status = parts[0]
    if status == "ok" and len(parts) >= 2 and parts[1].startswith("B"):
        suffix = " (not validated)" if "no_cli_validation" in parts[2:] else ""
        return CheckOutcome.OK, f"AID {short_handle(parts[1], 8)}{suffix}"
    if status == "error" and len(parts) >= 2:
        reason = parts[1]
        if reason == "no_identity":
            return CheckOutcome.ERROR, "No identity file"
        if reason == "no_aid":
            return CheckOutcome.ERROR, "Identity file has no AID"
        if reason in ("fake", "invalid") and len(parts) >= 3:
            label = "Fake identity" if reason == "fake" else "Invalid identity"
            return CheckOutcome.ERROR, f"{label} ({short_handle(parts[2], 8)})"
    raise ValueError(raw)


def _decode_amcp_config(raw: str, options: DecodeOptions) -> Decoded:
    if raw == "ok:all_present":
        return CheckOutcome.OK, "All keys present"
    if raw == "warn:no_pamcp_or_config":
        return CheckOutcome.WARN, "proactive-amcp or config missing"
    if raw.startswith("warn:missing:"):
        keys = [key for key in raw[len("warn:missing:"):].split(",") if key]
        return CheckOutcome.WARN, f"Missing: {', '.join(keys)}"
    raise ValueError(raw)


def _decode_checkpoint(raw: str, options: DecodeOptions) -> Decoded:
    if raw.startswith("none:"):
        return CheckOutcome.WARN, "No checkpoint found"
    if raw.startswith("error:"):
        return CheckOutcome.WARN, "Could not read checkpoint"
    cid, sep, age = raw.rpartition(":")
    if not sep or not cid:
        raise ValueError(raw)
    label = short_handle(cid, 12)
    if age in ("unknown_age", "no_timestamp"):
        return CheckOutcome.OK, f"{label} (age unknown)"
    hours = age.removesuffix("h")
    if not age.endswith("h") or not hours.isdigit():
        raise ValueError(raw)
    if int(hours) > options.stale_after_hours:
        return CheckOutcome.WARN, f"Stale: {label} ({hours}h ago)"
    return CheckOutcome.OK, f"{label} ({hours}h ago)"


DEFAULT_DECODERS: Dict[str, DecodeFn] = {
    "gateway_process": _decode_gateway,
    "health_endpoint": _decode_health,
    "sessions": _decode_sessions,
    "config_valid": _decode_config_valid,
    "disk": _decode_disk,
    "memory": _decode_memory,
    "agent_cli": _decode_agent_cli,
    "agent_auth": _decode_agent_auth,
    "api_key": _decode_api_key,
    "user_mismatch": _decode_user_mismatch,
    "amcp_identity": _decode_identity,
    "amcp_config": _decode_amcp_config,
    "last_checkpoint": _decode_checkpoint,
}


class ProbeDecoder:
    """Tagged registry of per-check decoders."""

    def __init__(self, options: DecodeOptions | None = None, decoders: Mapping[str, DecodeFn] | None = None) -> None:
        self._options = options or DecodeOptions()
        self._decoders: Dict[str, DecodeFn] = dict(decoders or DEFAULT_DECODERS)

    def register(self, check_id: str, decoder: DecodeFn) -> None:
        self._decoders[check_id] = decoder

    def decode(self, check_id: str, block: str) -> HealthCheck:
        spec = BATTERY_BY_ID.get(check_id)
        decoder = self._decoders.get(check_id)
        if spec is None or decoder is None:
            raise KeyError(f"no decoder registered for check '{check_id}'")
        raw = _first_line(block)
        if not raw:
            raise MalformedProbeOutput(check_id, block)
        try:
            outcome, detail = decoder(raw, self._options)
        except ValueError as exc:
            raise MalformedProbeOutput(check_id, raw) from exc
        return HealthCheck(check_id=check_id, category=spec.category, outcome=outcome, detail=detail)

    def decode_blocks(self, blocks: Mapping[str, str]) -> List[HealthCheck]:
        """Decode every remote check in battery order; malformed blocks become errors."""

        checks: List[HealthCheck] = []
        for spec in REMOTE_CHECKS:
            try:
                checks.append(self.decode(spec.check_id, blocks.get(spec.check_id, "")))
            except MalformedProbeOutput:
                checks.append(HealthCheck(spec.check_id, spec.category, CheckOutcome.ERROR, UNPARSEABLE))
        return checks


def _first_line(block: str) -> str:
    for line in block.splitlines():
        if line.strip():
            return line.strip()
    return ""


__all__ = [
    "DEFAULT_DECODERS",
    "DecodeOptions",
    "ProbeDecoder",
    "UNPARSEABLE",
    "mask_secret",
    "short_handle",
]
