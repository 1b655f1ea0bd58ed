"""Escalation rule applied after the single repair attempt."""

from __future__ import annotations

from typing import Dict, List, Mapping

from clawfleet.domain.diagnostics import DiagnosticReport

from .value_objects import AgentFixResult, EscalationDecision, RetryPolicy


def decide_escalation(
    report: DiagnosticReport,
    result: AgentFixResult,
    policy: RetryPolicy,
    prior_failures: Mapping[str, int] | None = None,
) -> EscalationDecision:
    """Escalate when the agent gave up, left failures behind, or exhausted retries."""

    reasons: List[str] = []
    issues: List[str] = []
    found = report.checks_failed

    if result.escalated > 0:
        reasons.append(f"agent escalated {result.escalated} issue(s)")
        issues.extend(result.escalations)
    if result.fixed < found:
        reasons.append(f"{found - result.fixed} of {found} failing check(s) not fixed")
    unfixed_attempts: Dict[str, int] = {}
    for fix in result.fixes:
        if not fix.fixed:
            unfixed_attempts[fix.issue] = unfixed_attempts.get(fix.issue, 0) + max(fix.attempts, 1)
    for issue, attempts in unfixed_attempts.items():
        if attempts >= policy.escalation_threshold:
            reasons.append(f"{issue}: {attempts} failed attempts reached threshold {policy.escalation_threshold}")
            issues.append(issue)
    for issue, count in (prior_failures or {}).items():
        if count >= policy.escalation_threshold:
            reasons.append(f"{issue}: failed in {count} consecutive fix runs")
            issues.append(issue)

    if reasons and not issues:
        issues.extend(check.check_id for check in report.failing_checks())
    return EscalationDecision(escalate=bool(reasons), reasons=tuple(reasons), issues=tuple(dict.fromkeys(issues)))


def next_failure_counts(
    previous: Mapping[str, int],
    report: DiagnosticReport,
    result: AgentFixResult,
) -> Dict[str, int]:
    """Carry per-issue failure counts across fix runs; fixed issues reset."""

    fixed = {fix.issue for fix in result.fixes if fix.fixed}
    counts: Dict[str, int] = {}
    for check in report.failing_checks():
        if check.check_id in fixed:
            continue
        counts[check.check_id] = int(previous.get(check.check_id, 0)) + 1
    return counts


__all__ = ["decide_escalation", "next_failure_counts"]
