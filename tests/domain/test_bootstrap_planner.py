from __future__ import annotations

from typing import Dict

import pytest

from clawfleet.domain.bootstrap import (
    Capability,
    CapabilityState,
    PlannedAction,
    needs_installer,
    parse_bootstrap_probe,
    plan_bootstrap,
)
from clawfleet.domain.errors import MalformedProbeOutput
from tests._fakes import AID, ALL_MISSING, bootstrap_probe


def _actions(stdout: str, *, force: bool = False) -> Dict[Capability, PlannedAction]:
    plan = plan_bootstrap(parse_bootstrap_probe(stdout), force=force)
    return {step.capability: step.planned_action for step in plan}


def test_all_present_plans_nothing() -> None:
    plan = plan_bootstrap(parse_bootstrap_probe(bootstrap_probe()))

    assert [step.capability for step in plan] == list(Capability)
    assert all(step.planned_action is PlannedAction.SKIP for step in plan)
    assert plan[0].current_state is CapabilityState.PRESENT_WITH_VERSION
    assert plan[0].detail == "1.4.0"


def test_fresh_instance_plans_every_step() -> None:
    assert _actions(bootstrap_probe(ALL_MISSING)) == {
        Capability.AMCP_CLI: PlannedAction.INSTALL,
        Capability.PROACTIVE_AMCP: PlannedAction.INSTALL,
        Capability.IDENTITY: PlannedAction.CREATE,
        Capability.CONFIG: PlannedAction.PUSH,
        Capability.WATCHDOG: PlannedAction.INSTALL,
        Capability.FIRST_CHECKPOINT: PlannedAction.CREATE,
    }


def test_force_recreates_identity_and_repushes_config_only() -> None:
    actions = _actions(bootstrap_probe(), force=True)

    assert actions[Capability.IDENTITY] is PlannedAction.RECREATE
    assert actions[Capability.CONFIG] is PlannedAction.PUSH
    assert actions[Capability.AMCP_CLI] is PlannedAction.SKIP
    assert actions[Capability.WATCHDOG] is PlannedAction.SKIP
    assert actions[Capability.FIRST_CHECKPOINT] is PlannedAction.SKIP


def test_config_is_pushed_when_another_step_mutates() -> None:
    actions = _actions(bootstrap_probe(watchdog="inactive"))

    assert actions[Capability.WATCHDOG] is PlannedAction.INSTALL
    assert actions[Capability.CONFIG] is PlannedAction.PUSH
    assert actions[Capability.IDENTITY] is PlannedAction.SKIP


def test_incomplete_config_alone_triggers_push() -> None:
    probe = parse_bootstrap_probe(bootstrap_probe(config="incomplete:pinata_jwt,solvr_api_key"))
    plan = {step.capability: step for step in plan_bootstrap(probe)}

    assert plan[Capability.CONFIG].planned_action is PlannedAction.PUSH
    assert plan[Capability.CONFIG].detail == "pinata_jwt,solvr_api_key"
    assert sum(step.planned_action.mutates for step in plan.values()) == 1


def test_identity_without_expected_prefix_counts_as_missing() -> None:
    probe = parse_bootstrap_probe(bootstrap_probe(identity="exists:EFakeHandle"))

    assert probe.state(Capability.IDENTITY) is CapabilityState.MISSING
    assert probe.detail(Capability.IDENTITY) == "fake:EFakeHandle"
    assert _actions(bootstrap_probe(identity="exists:EFakeHandle"))[Capability.IDENTITY] is PlannedAction.CREATE


def test_present_identity_keeps_handle_as_detail() -> None:
    probe = parse_bootstrap_probe(bootstrap_probe())
    assert probe.detail(Capability.IDENTITY) == AID


def test_missing_probe_line_is_malformed() -> None:
    stdout = "\n".join(line for line in bootstrap_probe().splitlines() if not line.startswith("watchdog"))
    with pytest.raises(MalformedProbeOutput) as excinfo:
        parse_bootstrap_probe(stdout)
    assert excinfo.value.check_id == "watchdog"


def test_unknown_state_is_malformed() -> None:
    with pytest.raises(MalformedProbeOutput):
        parse_bootstrap_probe(bootstrap_probe(amcp_cli="maybe"))


def test_installer_only_matters_when_something_is_missing() -> None:
    assert needs_installer(parse_bootstrap_probe(bootstrap_probe(installer="missing"))) == []
    blocked = needs_installer(parse_bootstrap_probe(bootstrap_probe(ALL_MISSING, installer="missing")))
    assert blocked[:2] == [Capability.AMCP_CLI, Capability.PROACTIVE_AMCP]
