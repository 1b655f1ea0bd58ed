from __future__ import annotations

import pytest

from clawfleet.domain.markers import classify_result, iter_outcomes
from clawfleet.domain.remediation import (
    AgentFixResult,
    FixRecord,
    RetryPolicy,
    decide_escalation,
    extract_json_object,
    next_failure_counts,
    parse_agent_output,
)
from tests._fakes import make_report

AGENT_OUTPUT = """\x1b[32mLooking at the diagnostics...\x1b[0m
Restarted the gateway with systemctl.
Final report: {"fixed": 1, "escalated": 0, "fixes": [{"issue": "gateway_process", "action": "systemctl restart openclaw-gateway", "status": "fixed", "attempts": 1}], "escalations": []}
Done.
"""


def test_parse_agent_output_finds_embedded_json() -> None:
    result = parse_agent_output(AGENT_OUTPUT)

    assert result.parsed
    assert result.fixed == 1
    assert result.escalated == 0
    assert result.fixes == (FixRecord("gateway_process", "systemctl restart openclaw-gateway", "fixed", 1),)


def test_extract_skips_unbalanced_braces() -> None:
    text = 'log line with { stray brace\n{"fixed": 0, "escalated": 1, "escalations": ["api_key"]}'
    assert extract_json_object(text) == {"fixed": 0, "escalated": 1, "escalations": ["api_key"]}


@pytest.mark.parametrize(
    "raw",
    [
        "agent crashed before producing a verdict",
        '{"fixed": -1, "escalated": 0}',
        '{"escalated": 0}',
    ],
)
def test_unusable_output_yields_zeroed_result(raw: str) -> None:
    result = parse_agent_output(raw)
    assert not result.parsed
    assert (result.fixed, result.escalated) == (0, 0)
    assert result.raw_output == raw


def test_escalation_objects_are_reduced_to_issue_names() -> None:
    result = parse_agent_output('{"fixed": 0, "escalated": 1, "escalations": [{"issue": "api_key", "reason": "billing"}]}')
    assert result.escalations == ("api_key",)


def test_no_escalation_when_everything_was_fixed() -> None:
    report = make_report(gateway_process="error:not_running")
    decision = decide_escalation(report, AgentFixResult(fixed=1), RetryPolicy())
    assert not decision.escalate
    assert decision.issues == ()


def test_unfixed_failures_escalate_with_failing_checks_named() -> None:
    report = make_report(gateway_process="error:not_running", disk="5")
    decision = decide_escalation(report, AgentFixResult(fixed=1), RetryPolicy())

    assert decision.escalate
    assert decision.reasons == ("1 of 2 failing check(s) not fixed",)
    assert decision.issues == ("gateway_process", "disk")


def test_agent_escalations_are_honoured_even_when_counts_match() -> None:
    report = make_report(api_key="401:sk-ant-bad***")
    result = AgentFixResult(fixed=1, escalated=1, escalations=("api_key",))
    decision = decide_escalation(report, result, RetryPolicy())

    assert decision.escalate
    assert decision.issues == ("api_key",)


def test_attempt_threshold_escalates() -> None:
    report = make_report(gateway_process="error:not_running")
    result = AgentFixResult(fixed=1, fixes=(FixRecord("health_endpoint", status="failed", attempts=2),))

    assert not decide_escalation(report, result, RetryPolicy(escalation_threshold=3)).escalate
    decision = decide_escalation(report, result, RetryPolicy(escalation_threshold=2))
    assert decision.escalate
    assert decision.issues == ("health_endpoint",)


def test_failed_attempts_accumulate_per_issue() -> None:
    report = make_report(gateway_process="error:not_running")
    result = AgentFixResult(
        fixed=1,
        fixes=(
            FixRecord("gateway_process", action="restart", status="failed", attempts=1),
            FixRecord("gateway_process", action="reinstall", status="failed", attempts=1),
            FixRecord("gateway_process", action="restore config", status="failed"),
            FixRecord("gateway_process", action="restart again", status="fixed", attempts=1),
            FixRecord("disk", action="prune logs", status="failed", attempts=1),
        ),
    )

    decision = decide_escalation(report, result, RetryPolicy(escalation_threshold=3))

    assert decision.escalate
    assert decision.issues == ("gateway_process",)
    assert decision.reasons == ("gateway_process: 3 failed attempts reached threshold 3",)


def test_prior_failure_counts_escalate_at_threshold() -> None:
    report = make_report(gateway_process="error:not_running")
    decision = decide_escalation(report, AgentFixResult(fixed=1), RetryPolicy(), {"gateway_process": 3})
    assert decision.escalate
    assert "consecutive" in decision.reasons[0]


def test_failure_counts_carry_over_and_reset_on_fix() -> None:
    report = make_report(gateway_process="error:not_running", disk="5")
    result = AgentFixResult(fixed=1, fixes=(FixRecord("disk", status="fixed", attempts=1),))

    counts = next_failure_counts({"gateway_process": 2, "disk": 4, "memory": 1}, report, result)
    assert counts == {"gateway_process": 3}


def test_retry_policy_validation() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    policy = RetryPolicy.from_dict({"escalation_threshold": "5", "persist_failures": True})
    assert policy.escalation_threshold == 5
    assert policy.persist_failures
    assert policy.max_attempts == 3


def test_classify_result_takes_last_marker() -> None:
    stdout = "npm WARN deprecated\n__RESULT__fail:first try\n__RESULT__ok:1.4.0\n"
    outcome = classify_result(stdout)
    assert outcome.ok
    assert outcome.data == "1.4.0"
    assert len(list(iter_outcomes(stdout))) == 2


def test_missing_marker_is_a_failure() -> None:
    outcome = classify_result("installed, probably\n")
    assert not outcome.ok
    assert outcome.reason == "no result marker in output"
