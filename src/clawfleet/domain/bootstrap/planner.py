"""Probe parsing and the pure bootstrap planner.

Dry runs and live runs both call :func:`plan_bootstrap` on the same probe, so
the set of actions a live run performs is exactly the non-skip part of the
plan a dry run prints.
"""

from __future__ import annotations

from typing import Dict, List

from clawfleet.domain.errors import MalformedProbeOutput

from .value_objects import (
    CAPABILITY_ORDER,
    BootstrapProbe,
    BootstrapStep,
    Capability,
    CapabilityProbe,
    CapabilityState,
    PlannedAction,
)

INSTALLER = "npm"
IDENTITY_PREFIX = "B"

_INSTALLABLE = (Capability.AMCP_CLI, Capability.PROACTIVE_AMCP, Capability.WATCHDOG)


def _versioned(detail: str) -> CapabilityState:
    if detail and detail != "installed":
        return CapabilityState.PRESENT_WITH_VERSION
    return CapabilityState.PRESENT


def _parse_capability(capability: Capability, value: str) -> CapabilityProbe:
    status, _, rest = value.partition(":")
    if capability in (Capability.AMCP_CLI, Capability.PROACTIVE_AMCP):
        if status in ("ok", "git", "bin"):
            return CapabilityProbe(capability, _versioned(rest), rest)
        if status == "missing":
            return CapabilityProbe(capability, CapabilityState.MISSING)
    elif capability is Capability.IDENTITY:
        if status == "exists":
            if rest.startswith(IDENTITY_PREFIX):
                return CapabilityProbe(capability, CapabilityState.PRESENT, rest)
            return CapabilityProbe(capability, CapabilityState.MISSING, f"fake:{rest}" if rest else "no_aid")
        if status == "missing":
            return CapabilityProbe(capability, CapabilityState.MISSING)
    elif capability is Capability.CONFIG:
        if status == "complete":
            return CapabilityProbe(capability, CapabilityState.PRESENT)
        if status in ("incomplete", "missing"):
            return CapabilityProbe(capability, CapabilityState.MISSING, rest)
    elif capability is Capability.WATCHDOG:
        if status == "active":
            return CapabilityProbe(capability, CapabilityState.PRESENT)
        if status == "inactive":
            return CapabilityProbe(capability, CapabilityState.MISSING)
    elif capability is Capability.FIRST_CHECKPOINT:
        if status == "exists":
            return CapabilityProbe(capability, CapabilityState.PRESENT, rest)
        if status == "missing":
            return CapabilityProbe(capability, CapabilityState.MISSING)
    raise MalformedProbeOutput(capability.value, value)


def parse_bootstrap_probe(stdout: str) -> BootstrapProbe:
    """Parse ``<capability>:<state>`` lines from the bootstrap probe."""

    values: Dict[str, str] = {}
    for line in stdout.splitlines():
        key, sep, value = line.strip().partition(":")
        if sep and key not in values:
            values[key] = value
    if "installer" not in values or values["installer"] not in ("ok", "missing"):
        raise MalformedProbeOutput("installer", values.get("installer", ""))
    capabilities: Dict[Capability, CapabilityProbe] = {}
    for capability in CAPABILITY_ORDER:
        if capability.value not in values:
            raise MalformedProbeOutput(capability.value, "")
        capabilities[capability] = _parse_capability(capability, values[capability.value])
    return BootstrapProbe(installer_available=values["installer"] == "ok", capabilities=capabilities)


def plan_bootstrap(probe: BootstrapProbe, *, force: bool = False) -> List[BootstrapStep]:
    actions: Dict[Capability, PlannedAction] = {}
    for capability in _INSTALLABLE:
        state = probe.state(capability)
        actions[capability] = PlannedAction.SKIP if state.is_present else PlannedAction.INSTALL

    if not probe.state(Capability.IDENTITY).is_present:
        actions[Capability.IDENTITY] = PlannedAction.CREATE
    elif force:
        actions[Capability.IDENTITY] = PlannedAction.RECREATE
    else:
        actions[Capability.IDENTITY] = PlannedAction.SKIP

    if probe.state(Capability.FIRST_CHECKPOINT).is_present:
        actions[Capability.FIRST_CHECKPOINT] = PlannedAction.SKIP
    else:
        actions[Capability.FIRST_CHECKPOINT] = PlannedAction.CREATE

    # Config is pushed whenever the step is reached: it is incomplete, forced,
    # or anything else on the instance is about to change.
    others_mutate = any(action.mutates for action in actions.values())
    if force or others_mutate or not probe.state(Capability.CONFIG).is_present:
        actions[Capability.CONFIG] = PlannedAction.PUSH
    else:
        actions[Capability.CONFIG] = PlannedAction.SKIP

    return [
        BootstrapStep(
            capability=capability,
            current_state=probe.state(capability),
            planned_action=actions[capability],
            detail=probe.detail(capability),
        )
        for capability in CAPABILITY_ORDER
    ]


def needs_installer(probe: BootstrapProbe) -> List[Capability]:
    """Capabilities that block the run when the installer is absent."""

    if probe.installer_available:
        return []
    return probe.missing()


__all__ = ["IDENTITY_PREFIX", "INSTALLER", "needs_installer", "parse_bootstrap_probe", "plan_bootstrap"]
