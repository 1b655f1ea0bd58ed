"""Application service running the diagnostic battery against one instance."""

from __future__ import annotations

from typing import List

from clawfleet.domain.diagnostics import (
    BATTERY_BY_ID,
    PROBE_VERSION,
    SSH_CHECK,
    CheckOutcome,
    DecodeOptions,
    DiagnosticReport,
    HealthCheck,
    ProbeDecoder,
    derive_state,
    split_probe_output,
)
from clawfleet.domain.errors import TransportError
from clawfleet.domain.instance import Instance, InstanceStatus
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import RemoteSession, RemoteTransport, tag_script
from clawfleet.resources import load_script
from clawfleet.utils.clock import Clock, isoformat, utc_now


def build_probe_script() -> str:
    return tag_script("diagnose", load_script("diagnose_probe"))


class DiagnosticService:
    """Collects the whole battery in one round trip and classifies it."""

    def __init__(
        self,
        repository: InstanceRepository,
        transport: RemoteTransport,
        *,
        stale_after_hours: int = 24,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._transport = transport
        self._decoder = ProbeDecoder(DecodeOptions(stale_after_hours=stale_after_hours))
        self._clock = clock

    def diagnose(self, name: str) -> DiagnosticReport:
        """Diagnose ``name`` and persist the derived state.

        Transport failures do not raise: they yield an ``unreachable`` report
        with a single failing ``ssh`` check.
        """

        instance = self._repository.get(name)
        try:
            with self._transport.open(instance) as session:
                report = self.diagnose_in_session(instance, session)
        except TransportError as exc:
            report = self.unreachable_report(instance, exc)
        self.persist(instance, report)
        return report

    def diagnose_in_session(self, instance: Instance, session: RemoteSession) -> DiagnosticReport:
        """Run the battery over an already open session. Transport errors propagate."""

        result = session.run(build_probe_script())
        blocks = split_probe_output(result.stdout)
        ssh = HealthCheck(
            check_id=SSH_CHECK,
            category=BATTERY_BY_ID[SSH_CHECK].category,
            outcome=CheckOutcome.OK,
            detail=f"Connected ({session.login_user}, {session.connect_ms}ms)",
        )
        checks: List[HealthCheck] = [ssh, *self._decoder.decode_blocks(blocks)]
        return DiagnosticReport(
            instance=instance.name,
            ip=instance.ip,
            timestamp=isoformat(self._clock()),
            checks=tuple(checks),
            overall_state=derive_state(checks),
            probe_version=PROBE_VERSION,
        )

    def unreachable_report(self, instance: Instance, error: TransportError) -> DiagnosticReport:
        ssh = HealthCheck(
            check_id=SSH_CHECK,
            category=BATTERY_BY_ID[SSH_CHECK].category,
            outcome=CheckOutcome.ERROR,
            detail=error.reason,
        )
        return DiagnosticReport(
            instance=instance.name,
            ip=instance.ip,
            timestamp=isoformat(self._clock()),
            checks=(ssh,),
            overall_state=derive_state([ssh], transport_failed=True),
            transport_failure=error.kind,
            probe_version=PROBE_VERSION,
        )

    def persist(self, instance: Instance, report: DiagnosticReport) -> Instance:
        # Re-read so concurrent metadata edits made during the round trip survive.
        current = self._repository.get(instance.name)
        updated = current.with_updates(
            status=InstanceStatus(report.overall_state.value),
            last_diagnosed_at=report.timestamp,
        )
        self._repository.put(updated)
        return updated


__all__ = ["DiagnosticService", "build_probe_script"]
