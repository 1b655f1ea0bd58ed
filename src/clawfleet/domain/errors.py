"""Error taxonomy shared by every fleet operation."""

from __future__ import annotations


class FleetError(RuntimeError):
    """Base class for failures surfaced by fleet operations."""


class ConfigError(FleetError):
    """Raised when local settings, policy or credentials are malformed."""


class UnknownInstance(FleetError):
    def __init__(self, name: str) -> None:
        super().__init__(f"instance '{name}' not found")
        self.instance = name


class TransportError(FleetError):
    """A remote session could not be established or completed."""

    kind = "transport"

    def __init__(self, instance: str, reason: str) -> None:
        super().__init__(f"{instance}: {reason}")
        self.instance = instance
        self.reason = reason


class Unreachable(TransportError):
    kind = "unreachable"


class AuthFailure(TransportError):
    kind = "auth_failure"


class MalformedProbeOutput(FleetError):
    """A probe block did not match the grammar of its check."""

    def __init__(self, check_id: str, raw: str) -> None:
        super().__init__(f"unparseable output for check '{check_id}': {raw!r}")
        self.check_id = check_id
        self.raw = raw


class ActionFailed(FleetError):
    """A remote mutating action reported failure or broke its post-condition."""

    def __init__(self, step: str, reason: str) -> None:
        super().__init__(f"{step} failed: {reason}")
        self.step = step
        self.reason = reason


class InstallerUnavailable(ActionFailed):
    def __init__(self, installer: str, missing: list[str]) -> None:
        super().__init__(
            "preflight",
            f"installer '{installer}' missing on instance; cannot install {', '.join(missing)}",
        )
        self.installer = installer
        self.missing = list(missing)


class CollaboratorUnavailable(FleetError):
    """An optional collaborator (knowledge base, notifier) could not be reached."""

    def __init__(self, collaborator: str, reason: str) -> None:
        super().__init__(f"{collaborator} unavailable: {reason}")
        self.collaborator = collaborator
        self.reason = reason


__all__ = [
    "ActionFailed",
    "AuthFailure",
    "CollaboratorUnavailable",
    "ConfigError",
    "FleetError",
    "InstallerUnavailable",
    "MalformedProbeOutput",
    "TransportError",
    "UnknownInstance",
    "Unreachable",
]
