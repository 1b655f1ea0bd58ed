"""Port describing persistence of instance metadata."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from clawfleet.domain.instance import Instance


class InstanceRepository(ABC):
    """Abstract storage for per-instance metadata records."""

    @abstractmethod
    def get(self, name: str) -> Instance:
        """Return the instance or raise ``UnknownInstance``."""

    @abstractmethod
    def put(self, instance: Instance) -> None:
        """Persist the full record, replacing the previous one atomically."""

    @abstractmethod
    def list(self) -> List[Instance]:
        """Return every readable instance ordered by name."""
