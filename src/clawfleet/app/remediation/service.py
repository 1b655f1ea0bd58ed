"""Turns diagnostic failures into one repair attempt and a hard escalation contract."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, List, Sequence

from clawfleet.app.diagnostics import DiagnosticService
from clawfleet.domain.diagnostics import DiagnosticReport
from clawfleet.domain.errors import CollaboratorUnavailable, TransportError
from clawfleet.domain.instance import Instance, ParentNotifyTarget
from clawfleet.domain.remediation import (
    AgentFixResult,
    EscalationDecision,
    EscalationRecord,
    RemediationAttempt,
    RemediationOutcome,
    RemediationResult,
    RetryPolicy,
    decide_escalation,
    next_failure_counts,
    parse_agent_output,
)
from clawfleet.ports.collaborators import KnowledgeHint, KnowledgeSource, Notice, Notifier, RepairAgent
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import RemoteSession, RemoteTransport
from clawfleet.resources import load_text, render
from clawfleet.settings import RuntimeSettings
from clawfleet.utils.clock import Clock, isoformat, utc_now
from clawfleet.utils.telemetry import record_structured_event

FAILURES_KEY = "remediation_failures"
ATTEMPTS_KEY = "remediation_attempts"


def build_prompt(report: DiagnosticReport, hints: Sequence[KnowledgeHint], policy: RetryPolicy) -> str:
    if hints:
        lines = []
        for hint in hints:
            line = f"- [{hint.problem_id}] {hint.title}"
            if hint.approach:
                line += f"\n  Worked before: {hint.approach}"
            lines.append(line)
        knowledge = "\n".join(lines)
    else:
        knowledge = "No prior solutions found. Diagnose from first principles."
    return render(
        load_text("fix_prompt.md"),
        {
            "INSTANCE_NAME": report.instance,
            "DIAGNOSE_OUTPUT": json.dumps(report.to_dict(), indent=2, ensure_ascii=False),
            "KNOWLEDGE_SECTION": knowledge,
            "MAX_ATTEMPTS": str(policy.max_attempts),
            "BACKOFF_SECONDS": str(policy.backoff_seconds),
        },
    )


class RemediationService:
    def __init__(
        self,
        repository: InstanceRepository,
        transport: RemoteTransport,
        diagnostics: DiagnosticService,
        agent: RepairAgent,
        *,
        policy: RetryPolicy | None = None,
        knowledge: KnowledgeSource | None = None,
        notifier: Notifier | None = None,
        settings: RuntimeSettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._transport = transport
        self._diagnostics = diagnostics
        self._agent = agent
        self._policy = policy or RetryPolicy()
        self._knowledge = knowledge
        self._notifier = notifier
        self._settings = settings
        self._clock = clock

    def fix(self, name: str) -> RemediationResult:
        """Diagnose, repair once if anything failed, then decide on escalation.

        ``Unreachable`` and ``AuthFailure`` propagate: a child we could not
        reach is never reported as a partial remediation.
        """

        instance = self._repository.get(name)
        try:
            with self._transport.open(instance) as session:
                report = self._diagnostics.diagnose_in_session(instance, session)
                self._diagnostics.persist(instance, report)
                if report.checks_failed == 0:
                    return self._healthy(instance, report)
                return self._remediate(instance, session, report)
        except TransportError as exc:
            self._diagnostics.persist(instance, self._diagnostics.unreachable_report(instance, exc))
            raise

    # ---- Internals

    def _healthy(self, instance: Instance, report: DiagnosticReport) -> RemediationResult:
        attempt = RemediationAttempt(
            attempt_number=0,
            issues_found=0,
            issues_fixed=0,
            issues_escalated=0,
            timestamp=isoformat(self._clock()),
        )
        if self._policy.persist_failures and self._repository.get(instance.name).extra.get(FAILURES_KEY):
            self._store_failures(instance, {}, reset_attempts=True)
        return RemediationResult(
            instance=instance.name,
            outcome=RemediationOutcome.HEALTHY,
            fixed=0,
            escalated=0,
            attempt=attempt,
            details={"diagnosis": report.to_dict()},
        )

    def _remediate(self, instance: Instance, session: RemoteSession, report: DiagnosticReport) -> RemediationResult:
        warnings: List[str] = []
        hints = self._search_knowledge(instance, report, warnings)
        prompt = build_prompt(report, hints, self._policy)
        result = parse_agent_output(self._agent.repair(session, instance, prompt))
        if not result.parsed:
            warnings.append("repair agent output could not be parsed")

        attempt_number = 1
        if self._policy.persist_failures:
            current = self._repository.get(instance.name)
            counts = next_failure_counts(current.extra.get(FAILURES_KEY) or {}, report, result)
            attempt_number = int(current.extra.get(ATTEMPTS_KEY, 0)) + 1
            self._store_failures(instance, counts, attempts=attempt_number)
            decision = decide_escalation(report, result, self._policy, counts)
        else:
            decision = decide_escalation(report, result, self._policy)

        escalation: EscalationRecord | None = None
        details: Dict[str, Any] = {
            "diagnosis": report.to_dict(),
            "agent": result.as_dict(),
            "knowledge": [asdict(hint) for hint in hints],
        }
        if decision.escalate:
            escalation = self._escalate(instance, session, report, result, decision)
        elif result.fixed > 0:
            details["summary_sent"] = self._send_summary(instance, session, result)

        attempt = RemediationAttempt(
            attempt_number=attempt_number,
            issues_found=report.checks_failed,
            issues_fixed=result.fixed,
            issues_escalated=result.escalated,
            timestamp=isoformat(self._clock()),
        )
        return RemediationResult(
            instance=instance.name,
            outcome=RemediationOutcome.PARTIAL if decision.escalate else RemediationOutcome.REMEDIATED,
            fixed=result.fixed,
            escalated=result.escalated,
            attempt=attempt,
            details=details,
            escalation=escalation,
            warnings=warnings,
        )

    def _search_knowledge(self, instance: Instance, report: DiagnosticReport, warnings: List[str]) -> List[KnowledgeHint]:
        if self._knowledge is None:
            return []
        hints: List[KnowledgeHint] = []
        for check in report.failing_checks():
            try:
                hints.extend(self._knowledge.search(f"openclaw {check.check_id} {check.detail}"))
            except CollaboratorUnavailable as exc:
                warnings.append(str(exc))
                self._warn(instance, "remediation.knowledge", str(exc))
                break
        return hints

    def _escalate(
        self,
        instance: Instance,
        session: RemoteSession,
        report: DiagnosticReport,
        result: AgentFixResult,
        decision: EscalationDecision,
    ) -> EscalationRecord:
        lines = [
            f"Instance {instance.name} ({instance.ip}) could not be fully repaired.",
            f"Checks: {report.checks_passed} passed, {report.checks_warned} warned, {report.checks_failed} failed.",
            f"Agent reported {result.fixed} fixed, {result.escalated} escalated.",
            "",
            "Issues:",
            *[f"- {issue}" for issue in decision.issues],
            "",
            "Reasons:",
            *[f"- {reason}" for reason in decision.reasons],
            "",
            f"Investigate manually: claw diagnose {instance.name}",
        ]
        notice = Notice(
            instance=instance.name,
            subject=f"ALERT: {instance.name} needs attention",
            body="\n".join(lines),
            urgent=True,
            tags=list(decision.issues),
        )
        if self._notifier is None:
            return EscalationRecord(decision=decision, error="no notifier configured")
        try:
            channels = self._notifier.deliver(instance.parent_notify, notice, session)
        except CollaboratorUnavailable as exc:
            self._warn(instance, "remediation.escalation", str(exc))
            return EscalationRecord(decision=decision, error=str(exc))
        return EscalationRecord(decision=decision, delivered=True, channels=tuple(channels))

    def _send_summary(self, instance: Instance, session: RemoteSession, result: AgentFixResult) -> bool:
        if self._notifier is None or not instance.parent_notify.has_telegram:
            return False
        notice = Notice(
            instance=instance.name,
            subject=f"{instance.name}: auto-fixed {result.fixed} issue(s)",
            body="All failing checks were repaired.",
            urgent=False,
        )
        try:
            target = ParentNotifyTarget(
                telegram_token=instance.parent_notify.telegram_token,
                chat_id=instance.parent_notify.chat_id,
            )
            self._notifier.deliver(target, notice)
        except CollaboratorUnavailable as exc:
            self._warn(instance, "remediation.summary", str(exc))
            return False
        return True

    def _store_failures(self, instance: Instance, counts: Dict[str, int], *, attempts: int = 0, reset_attempts: bool = False) -> None:
        current = self._repository.get(instance.name)
        updates: Dict[str, Any] = {FAILURES_KEY: counts}
        if attempts or reset_attempts:
            updates[ATTEMPTS_KEY] = attempts
        self._repository.put(current.with_updates(**updates))

    def _warn(self, instance: Instance, event: str, message: str) -> None:
        if self._settings is None:
            return
        record_structured_event(
            self._settings,
            event,
            status="warning",
            level="warn",
            component="remediation",
            instance=instance.name,
            payload={"message": message},
        )


__all__ = ["RemediationService", "build_prompt"]
