"""Ports for the collaborators the remediation engine talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from clawfleet.domain.instance import Instance, ParentNotifyTarget
from clawfleet.ports.transport import RemoteSession


@dataclass(frozen=True)
class KnowledgeHint:
    problem_id: str
    title: str
    approach: str = ""
    score: float = 0.0


class KnowledgeSource(ABC):
    """Search-and-learn knowledge base. Failures raise ``CollaboratorUnavailable``."""

    @abstractmethod
    def search(self, query: str, *, limit: int = 3) -> List[KnowledgeHint]:
        """Return ranked hints for ``query``."""


class RepairAgent(ABC):
    """On-box automated repair agent, invoked at most once per remediation."""

    @abstractmethod
    def repair(self, session: RemoteSession, instance: Instance, prompt: str) -> str:
        """Run the agent with ``prompt`` and return its raw textual output."""


@dataclass(frozen=True)
class Notice:
    instance: str
    subject: str
    body: str
    urgent: bool = True
    tags: List[str] = field(default_factory=list)


class Notifier(ABC):
    """Fire-and-forget delivery of notices to a parent target."""

    @abstractmethod
    def deliver(self, target: ParentNotifyTarget, notice: Notice, session: RemoteSession | None = None) -> List[str]:
        """Deliver the notice; return channels used. Raise ``CollaboratorUnavailable`` if none succeeded."""


__all__ = ["KnowledgeHint", "KnowledgeSource", "Notice", "Notifier", "RepairAgent"]
