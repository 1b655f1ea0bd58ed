"""Value objects produced by a diagnostic run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class CheckCategory(str, Enum):
    CONNECTIVITY = "connectivity"
    AUTHENTICATION = "authentication"
    AMCP = "amcp"
    SYSTEM = "system"


class CheckOutcome(str, Enum):
    OK = "ok"
    WARN = "warn"
    ERROR = "error"


class OverallState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OFFLINE = "offline"
    UNREACHABLE = "unreachable"


CATEGORY_ORDER: Tuple[CheckCategory, ...] = (
    CheckCategory.CONNECTIVITY,
    CheckCategory.AUTHENTICATION,
    CheckCategory.AMCP,
    CheckCategory.SYSTEM,
)


@dataclass(frozen=True)
class HealthCheck:
    check_id: str
    category: CheckCategory
    outcome: CheckOutcome
    detail: str

    def as_dict(self) -> Dict[str, str]:
        return {"status": self.outcome.value, "detail": self.detail}


@dataclass(frozen=True)
class DiagnosticReport:
    """Immutable result of one diagnostic battery against one instance."""

    instance: str
    ip: str
    timestamp: str
    checks: Tuple[HealthCheck, ...]
    overall_state: OverallState
    transport_failure: str | None = None
    probe_version: str = ""
    notes: Dict[str, Any] = field(default_factory=dict)

    @property
    def checks_passed(self) -> int:
        return self._count(CheckOutcome.OK)

    @property
    def checks_warned(self) -> int:
        return self._count(CheckOutcome.WARN)

    @property
    def checks_failed(self) -> int:
        return self._count(CheckOutcome.ERROR)

    @property
    def errors(self) -> List[str]:
        return [f"{check.check_id}: {check.detail}" for check in self.checks if check.outcome is CheckOutcome.ERROR]

    def failing_checks(self) -> List[HealthCheck]:
        return [check for check in self.checks if check.outcome is CheckOutcome.ERROR]

    def get(self, check_id: str) -> HealthCheck | None:
        for check in self.checks:
            if check.check_id == check_id:
                return check
        return None

    def by_category(self) -> Dict[CheckCategory, List[HealthCheck]]:
        grouped: Dict[CheckCategory, List[HealthCheck]] = {category: [] for category in CATEGORY_ORDER}
        for check in self.checks:
            grouped[check.category].append(check)
        return {category: items for category, items in grouped.items() if items}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "instance": self.instance,
            "ip": self.ip,
            "timestamp": self.timestamp,
            "overall_state": self.overall_state.value,
            "checks_passed": self.checks_passed,
            "checks_failed": self.checks_failed,
            "checks_warned": self.checks_warned,
            "checks": {check.check_id: check.as_dict() for check in self.checks},
            "errors": self.errors,
        }
        if self.transport_failure:
            payload["transport_failure"] = self.transport_failure
        if self.probe_version:
            payload["probe_version"] = self.probe_version
        return payload

    def _count(self, outcome: CheckOutcome) -> int:
        return sum(1 for check in self.checks if check.outcome is outcome)


__all__ = [
    "CATEGORY_ORDER",
    "CheckCategory",
    "CheckOutcome",
    "DiagnosticReport",
    "HealthCheck",
    "OverallState",
]
