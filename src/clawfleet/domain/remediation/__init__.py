"""Domain exports for remediation and escalation."""

from .escalation import decide_escalation, next_failure_counts
from .parsing import extract_json_object, parse_agent_output, strip_ansi
from .value_objects import (
    AgentFixResult,
    EscalationDecision,
    EscalationRecord,
    FixRecord,
    RemediationAttempt,
    RemediationOutcome,
    RemediationResult,
    RetryPolicy,
)

__all__ = [
    "AgentFixResult",
    "EscalationDecision",
    "EscalationRecord",
    "FixRecord",
    "RemediationAttempt",
    "RemediationOutcome",
    "RemediationResult",
    "RetryPolicy",
    "decide_escalation",
    "extract_json_object",
    "next_failure_counts",
    "parse_agent_output",
    "strip_ansi",
]
