"""Value objects for remediation attempts and escalations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget handed to the repair agent and the escalation rule."""

    max_attempts: int = 3
    escalation_threshold: int = 3
    backoff_seconds: int = 30
    persist_failures: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.escalation_threshold < 1:
            raise ValueError("escalation_threshold must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RetryPolicy":
        defaults = cls()
        persist = data.get("persist_failures", defaults.persist_failures)
        if not isinstance(persist, bool):
            raise ValueError(f"persist_failures must be true or false, got {persist!r}")
        return cls(
            max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
            escalation_threshold=int(data.get("escalation_threshold", defaults.escalation_threshold)),
            backoff_seconds=int(data.get("backoff_seconds", defaults.backoff_seconds)),
            persist_failures=persist,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "escalation_threshold": self.escalation_threshold,
            "backoff_seconds": self.backoff_seconds,
            "persist_failures": self.persist_failures,
        }


@dataclass(frozen=True)
class FixRecord:
    issue: str
    action: str = ""
    status: str = "unknown"
    attempts: int = 0

    @property
    def fixed(self) -> bool:
        return self.status == "fixed"

    def as_dict(self) -> Dict[str, Any]:
        return {"issue": self.issue, "action": self.action, "status": self.status, "attempts": self.attempts}


@dataclass(frozen=True)
class AgentFixResult:
    """What the repair agent reported, or a zeroed result when unparseable."""

    fixed: int = 0
    escalated: int = 0
    fixes: Tuple[FixRecord, ...] = ()
    escalations: Tuple[str, ...] = ()
    parsed: bool = True
    raw_output: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "fixed": self.fixed,
            "escalated": self.escalated,
            "fixes": [fix.as_dict() for fix in self.fixes],
            "escalations": list(self.escalations),
        }
        if not self.parsed:
            payload["parse_error"] = True
            payload["raw_output"] = self.raw_output
        return payload


class RemediationOutcome(str, Enum):
    HEALTHY = "healthy"
    REMEDIATED = "remediated"
    PARTIAL = "partial"


@dataclass(frozen=True)
class RemediationAttempt:
    attempt_number: int
    issues_found: int
    issues_fixed: int
    issues_escalated: int
    timestamp: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "issues_found": self.issues_found,
            "issues_fixed": self.issues_fixed,
            "issues_escalated": self.issues_escalated,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class EscalationDecision:
    escalate: bool
    reasons: Tuple[str, ...] = ()
    issues: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EscalationRecord:
    decision: EscalationDecision
    delivered: bool = False
    channels: Tuple[str, ...] = ()
    error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "reasons": list(self.decision.reasons),
            "issues": list(self.decision.issues),
            "delivered": self.delivered,
            "channels": list(self.channels),
            "error": self.error,
        }


@dataclass(frozen=True)
class RemediationResult:
    instance: str
    outcome: RemediationOutcome
    fixed: int
    escalated: int
    attempt: RemediationAttempt
    details: Dict[str, Any] = field(default_factory=dict)
    escalation: EscalationRecord | None = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance": self.instance,
            "outcome": self.outcome.value,
            "fixed": self.fixed,
            "escalated": self.escalated,
            "attempt": self.attempt.as_dict(),
            "details": self.details,
            "escalation": self.escalation.as_dict() if self.escalation else None,
            "warnings": list(self.warnings),
        }


__all__ = [
    "AgentFixResult",
    "EscalationDecision",
    "EscalationRecord",
    "FixRecord",
    "RemediationAttempt",
    "RemediationOutcome",
    "RemediationResult",
    "RetryPolicy",
]
