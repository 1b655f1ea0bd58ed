"""Runs identity-subsystem checkpoints on a child and records their CID."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List

from clawfleet.domain.errors import ActionFailed
from clawfleet.domain.instance import Instance
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import RemoteSession, RemoteTransport, tag_script
from clawfleet.resources import load_script
from clawfleet.utils.clock import Clock, isoformat, utc_now

# CIDv1, base32 multibase ("b" prefix) with a dag-pb or raw codec.
CID_PATTERN = re.compile(r"\bbaf[a-z2-7]{20,}\b")
NOT_CAPTURED = "identifier not captured"

_PRINCIPAL = "__PRINCIPAL__"
_EXIT = "__CKPT_EXIT__"
_FALLBACK = "__FALLBACK_CID__"


def extract_cid(text: str) -> str | None:
    match = CID_PATTERN.search(text)
    return match.group(0) if match else None


@dataclass(frozen=True)
class CheckpointResult:
    instance: str
    full: bool
    principal: str
    cid: str | None
    timestamp: str
    warning: str | None = None
    source: str | None = None
    output_tail: tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance": self.instance,
            "type": "full" if self.full else "quick",
            "principal": self.principal,
            "cid": self.cid,
            "timestamp": self.timestamp,
            "warning": self.warning,
            "source": self.source,
        }


class CheckpointCoordinator:
    def __init__(self, repository: InstanceRepository, transport: RemoteTransport, *, clock: Clock = utc_now) -> None:
        self._repository = repository
        self._transport = transport
        self._clock = clock

    def checkpoint(self, name: str, *, full: bool = False) -> CheckpointResult:
        instance = self._repository.get(name)
        with self._transport.open(instance) as session:
            result = self.run_in_session(instance, session, full=full)
        self.persist(instance, result)
        return result

    def run_in_session(self, instance: Instance, session: RemoteSession, *, full: bool = False) -> CheckpointResult:
        mode = "full-checkpoint" if full else "checkpoint"
        script = tag_script(f"checkpoint.{'full' if full else 'quick'}", load_script("checkpoint", mode=mode))
        stdout = session.run(script).stdout

        principal = session.login_user
        exit_code: int | None = None
        fallback = ""
        output: List[str] = []
        for line in stdout.splitlines():
            if line.startswith(_PRINCIPAL):
                principal = line[len(_PRINCIPAL):].strip() or principal
            elif line.startswith(_EXIT):
                try:
                    exit_code = int(line[len(_EXIT):].strip())
                except ValueError:
                    exit_code = None
            elif line.startswith(_FALLBACK):
                fallback = line[len(_FALLBACK):].strip()
            elif exit_code is None:
                output.append(line)

        if exit_code is None:
            raise ActionFailed("checkpoint", "checkpoint command did not report an exit status")
        if exit_code != 0:
            message = f"proactive-amcp {mode} exited with {exit_code}"
            tail = " | ".join(line.strip() for line in output[-3:] if line.strip())
            if tail:
                message += f": {tail}"
            raise ActionFailed("checkpoint", message)

        timestamp = isoformat(self._clock())
        cid = extract_cid("\n".join(output))
        source = "output"
        if cid is None:
            cid = extract_cid(fallback)
            source = "last-checkpoint.json"
        if cid is None:
            return CheckpointResult(
                instance=instance.name,
                full=full,
                principal=principal,
                cid=None,
                timestamp=timestamp,
                warning=NOT_CAPTURED,
                output_tail=tuple(output[-5:]),
            )
        return CheckpointResult(
            instance=instance.name,
            full=full,
            principal=principal,
            cid=cid,
            timestamp=timestamp,
            source=source,
        )

    def persist(self, instance: Instance, result: CheckpointResult) -> Instance | None:
        """Record the CID; a run without one leaves metadata untouched."""

        if result.cid is None:
            return None
        current = self._repository.get(instance.name)
        updated = current.with_updates(last_checkpoint_cid=result.cid, last_checkpoint_at=result.timestamp)
        self._repository.put(updated)
        return updated


__all__ = ["CID_PATTERN", "CheckpointCoordinator", "CheckpointResult", "NOT_CAPTURED", "extract_cid"]
