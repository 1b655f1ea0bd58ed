"""Value objects for the AMCP capability bootstrap."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class Capability(str, Enum):
    AMCP_CLI = "amcp_cli"
    PROACTIVE_AMCP = "proactive_amcp"
    IDENTITY = "identity"
    CONFIG = "config"
    WATCHDOG = "watchdog"
    FIRST_CHECKPOINT = "first_checkpoint"


CAPABILITY_ORDER: Tuple[Capability, ...] = tuple(Capability)

# Failures in these steps abort the run; later steps only degrade it.
FATAL_CAPABILITIES = frozenset({Capability.AMCP_CLI, Capability.PROACTIVE_AMCP, Capability.IDENTITY})


class CapabilityState(str, Enum):
    MISSING = "missing"
    PRESENT = "present"
    PRESENT_WITH_VERSION = "present_with_version"

    @property
    def is_present(self) -> bool:
        return self is not CapabilityState.MISSING


class PlannedAction(str, Enum):
    SKIP = "skip"
    INSTALL = "install"
    CREATE = "create"
    RECREATE = "recreate"
    PUSH = "push"

    @property
    def mutates(self) -> bool:
        return self is not PlannedAction.SKIP


class StepStatus(str, Enum):
    SKIPPED = "skipped"
    PLANNED = "planned"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CapabilityProbe:
    capability: Capability
    state: CapabilityState
    detail: str = ""


@dataclass(frozen=True)
class BootstrapProbe:
    """Snapshot of the instance taken by the single batched probe."""

    installer_available: bool
    capabilities: Dict[Capability, CapabilityProbe]

    def state(self, capability: Capability) -> CapabilityState:
        probe = self.capabilities.get(capability)
        return probe.state if probe else CapabilityState.MISSING

    def detail(self, capability: Capability) -> str:
        probe = self.capabilities.get(capability)
        return probe.detail if probe else ""

    def missing(self) -> List[Capability]:
        return [cap for cap in CAPABILITY_ORDER if not self.state(cap).is_present]


@dataclass(frozen=True)
class BootstrapStep:
    capability: Capability
    current_state: CapabilityState
    planned_action: PlannedAction
    detail: str = ""

    def as_dict(self) -> Dict[str, str]:
        return {
            "capability": self.capability.value,
            "current_state": self.current_state.value,
            "planned_action": self.planned_action.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class StepResult:
    step: BootstrapStep
    status: StepStatus
    message: str = ""

    def as_dict(self) -> Dict[str, str]:
        payload = self.step.as_dict()
        payload["status"] = self.status.value
        payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class BootstrapReport:
    instance: str
    dry_run: bool
    force: bool
    plan: Tuple[BootstrapStep, ...]
    results: Tuple[StepResult, ...] = ()
    amcp_status: str | None = None
    metadata_updates: Dict[str, Any] = field(default_factory=dict)
    preflight_error: str | None = None

    def executed(self) -> List[Tuple[Capability, PlannedAction]]:
        return [
            (result.step.capability, result.step.planned_action)
            for result in self.results
            if result.status in (StepStatus.DONE, StepStatus.FAILED)
        ]

    def planned_mutations(self) -> List[Tuple[Capability, PlannedAction]]:
        return [(step.capability, step.planned_action) for step in self.plan if step.planned_action.mutates]

    def failed(self) -> List[StepResult]:
        return [result for result in self.results if result.status is StepStatus.FAILED]

    def counts(self) -> Dict[str, int]:
        if self.dry_run:
            mutations = len(self.planned_mutations())
            return {"planned": mutations, "skipped": len(self.plan) - mutations, "failed": 0}
        return {
            "executed": sum(1 for result in self.results if result.status is StepStatus.DONE),
            "skipped": sum(1 for result in self.results if result.status is StepStatus.SKIPPED),
            "failed": len(self.failed()),
        }

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "instance": self.instance,
            "dry_run": self.dry_run,
            "force": self.force,
            "plan": [step.as_dict() for step in self.plan],
            "counts": self.counts(),
        }
        if self.preflight_error:
            payload["preflight_error"] = self.preflight_error
        if not self.dry_run:
            payload["results"] = [result.as_dict() for result in self.results]
            payload["amcp_status"] = self.amcp_status
        return payload


__all__ = [
    "BootstrapProbe",
    "BootstrapReport",
    "BootstrapStep",
    "CAPABILITY_ORDER",
    "Capability",
    "CapabilityProbe",
    "CapabilityState",
    "FATAL_CAPABILITIES",
    "PlannedAction",
    "StepResult",
    "StepStatus",
]
