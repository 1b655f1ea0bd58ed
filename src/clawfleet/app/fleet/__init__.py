"""Fleet-wide runner."""

from .service import FleetEntry, FleetService, FleetSummary

__all__ = ["FleetEntry", "FleetService", "FleetSummary"]
