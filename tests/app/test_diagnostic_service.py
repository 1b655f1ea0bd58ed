from __future__ import annotations

from datetime import datetime, timezone

import pytest

from clawfleet.adapters.instance import FileInstanceRepository
from clawfleet.app.diagnostics import DiagnosticService, build_probe_script
from clawfleet.domain.diagnostics import CheckOutcome, OverallState
from clawfleet.domain.errors import AuthFailure, UnknownInstance, Unreachable
from clawfleet.domain.instance import InstanceStatus
from clawfleet.ports.transport import script_operation
from tests._fakes import CID, FakeTransport, probe_output, register


def _clock() -> datetime:
    return datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def _service(repository: FileInstanceRepository, transport: FakeTransport, **kwargs: int) -> DiagnosticService:
    return DiagnosticService(repository, transport, clock=_clock, **kwargs)


def test_healthy_instance_in_one_round_trip(repository: FileInstanceRepository) -> None:
    register(repository, status="unknown")
    transport = FakeTransport({"diagnose": probe_output()})

    report = _service(repository, transport).diagnose("alpha")

    assert report.overall_state is OverallState.HEALTHY
    assert report.timestamp == "2026-10-18T09:30:00Z"
    assert report.get("ssh").detail == "Connected (root, 12ms)"
    assert report.checks_passed == 14
    assert transport.calls == ["diagnose"]
    assert transport.mutating_calls() == []
    assert transport.closed == 1

    stored = repository.get("alpha")
    assert stored.status is InstanceStatus.HEALTHY
    assert stored.extra["last_diagnosed_at"] == "2026-10-18T09:30:00Z"


def test_stopped_gateway_is_offline(repository: FileInstanceRepository) -> None:
    register(repository)
    transport = FakeTransport({"diagnose": probe_output(gateway_process="error:not_running")})

    report = _service(repository, transport).diagnose("alpha")

    assert report.overall_state is OverallState.OFFLINE
    assert report.checks_failed == 1
    assert repository.get("alpha").status is InstanceStatus.OFFLINE


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (Unreachable("alpha", "connection refused"), "unreachable"),
        (AuthFailure("alpha", "authentication rejected for root@203.0.113.10"), "auth_failure"),
    ],
)
def test_transport_failure_yields_unreachable_report(repository: FileInstanceRepository, error: Exception, kind: str) -> None:
    register(repository)
    transport = FakeTransport(open_error=error)

    report = _service(repository, transport).diagnose("alpha")

    assert report.overall_state is OverallState.UNREACHABLE
    assert report.transport_failure == kind
    assert len(report.checks) == 1
    assert report.checks[0].check_id == "ssh"
    assert report.checks[0].outcome is CheckOutcome.ERROR
    assert report.to_dict()["transport_failure"] == kind
    assert repository.get("alpha").status is InstanceStatus.UNREACHABLE


def test_unknown_instance_never_opens_transport(repository: FileInstanceRepository) -> None:
    transport = FakeTransport()
    with pytest.raises(UnknownInstance):
        _service(repository, transport).diagnose("ghost")
    assert transport.opened == []


def test_stale_threshold_is_configurable(repository: FileInstanceRepository) -> None:
    register(repository)
    transport = FakeTransport({"diagnose": probe_output(last_checkpoint=f"{CID}:30h")})

    lenient = _service(repository, transport, stale_after_hours=48).diagnose("alpha")
    default = _service(repository, transport).diagnose("alpha")

    assert lenient.overall_state is OverallState.HEALTHY
    assert default.overall_state is OverallState.DEGRADED
    assert default.get("last_checkpoint").detail.startswith("Stale:")


def test_metadata_edits_during_probe_survive(repository: FileInstanceRepository) -> None:
    register(repository)

    def edit_while_probing(script: str) -> str:
        current = repository.get("alpha")
        repository.put(current.with_updates(region="fsn1"))
        return probe_output()

    _service(repository, FakeTransport({"diagnose": edit_while_probing})).diagnose("alpha")

    stored = repository.get("alpha")
    assert stored.region == "fsn1"
    assert stored.status is InstanceStatus.HEALTHY


def test_probe_script_is_tagged_and_read_only() -> None:
    script = build_probe_script()
    assert script_operation(script) == "diagnose"
    assert "---CHECK---" in script
