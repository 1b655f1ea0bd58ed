"""Domain exports for the AMCP capability bootstrap."""

from .planner import IDENTITY_PREFIX, INSTALLER, needs_installer, parse_bootstrap_probe, plan_bootstrap
from .value_objects import (
    CAPABILITY_ORDER,
    FATAL_CAPABILITIES,
    BootstrapProbe,
    BootstrapReport,
    BootstrapStep,
    Capability,
    CapabilityProbe,
    CapabilityState,
    PlannedAction,
    StepResult,
    StepStatus,
)

__all__ = [
    "BootstrapProbe",
    "BootstrapReport",
    "BootstrapStep",
    "CAPABILITY_ORDER",
    "Capability",
    "CapabilityProbe",
    "CapabilityState",
    "FATAL_CAPABILITIES",
    "IDENTITY_PREFIX",
    "INSTALLER",
    "PlannedAction",
    "StepResult",
    "StepStatus",
    "needs_installer",
    "parse_bootstrap_probe",
    "plan_bootstrap",
]
