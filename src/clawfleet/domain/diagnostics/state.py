"""Overall state derivation for a diagnostic battery."""

from __future__ import annotations

from typing import Iterable

from .value_objects import CheckOutcome, HealthCheck, OverallState

GATEWAY_CHECK = "gateway_process"


def derive_state(checks: Iterable[HealthCheck], *, transport_failed: bool = False) -> OverallState:
    """First match wins: unreachable, offline, degraded, healthy."""

    if transport_failed:
        return OverallState.UNREACHABLE
    checks = list(checks)
    for check in checks:
        if check.check_id == GATEWAY_CHECK and check.outcome is CheckOutcome.ERROR:
            return OverallState.OFFLINE
    if any(check.outcome is not CheckOutcome.OK for check in checks):
        return OverallState.DEGRADED
    return OverallState.HEALTHY


__all__ = ["GATEWAY_CHECK", "derive_state"]
