"""Port for the remote probe transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from clawfleet.domain.instance import Instance

OP_HEADER = "# clawfleet-op: "


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def tag_script(operation: str, body: str) -> str:
    """Prefix a remote script with the operation header line."""

    return f"{OP_HEADER}{operation}\n{body.lstrip()}"


def script_operation(script: str) -> str | None:
    first_line = script.split("\n", 1)[0]
    if first_line.startswith(OP_HEADER):
        return first_line[len(OP_HEADER):].strip()
    return None


class RemoteSession(ABC):
    """One open channel to an instance. At most one is open per operation."""

    login_user: str
    connect_ms: int

    @abstractmethod
    def run(self, script: str, timeout: float | None = None) -> CommandResult:
        """Stream ``script`` to a POSIX shell and return its complete stdout."""

    @abstractmethod
    def upload(self, content: str, remote_path: str) -> None:
        """Write ``content`` to ``remote_path`` on the instance."""

    @abstractmethod
    def close(self) -> None:
        """Release the channel."""

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RemoteTransport(ABC):
    @abstractmethod
    def open(self, instance: Instance) -> RemoteSession:
        """Open a session or raise ``Unreachable`` / ``AuthFailure``."""


__all__ = [
    "CommandResult",
    "OP_HEADER",
    "RemoteSession",
    "RemoteTransport",
    "script_operation",
    "tag_script",
]
