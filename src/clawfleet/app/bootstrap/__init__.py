"""AMCP capability bootstrap orchestrator."""

from .service import BootstrapService

__all__ = ["BootstrapService"]
