"""Explicit result markers emitted by remote action scripts.

Action scripts print ``__RESULT__ok[:data]`` or ``__RESULT__fail[:reason]``;
keyed variants (``__RESULT__ok:<key>``) are used when one script performs
several actions. Everything else on stdout is treated as noise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

RESULT_MARKER = "__RESULT__"


@dataclass(frozen=True)
class ActionOutcome:
    ok: bool
    data: str = ""

    @property
    def reason(self) -> str:
        return "" if self.ok else (self.data or "unknown failure")


def iter_outcomes(stdout: str) -> Iterator[ActionOutcome]:
    for line in stdout.splitlines():
        line = line.strip()
        if not line.startswith(RESULT_MARKER):
            continue
        status, _, data = line[len(RESULT_MARKER):].partition(":")
        if status == "ok":
            yield ActionOutcome(True, data.strip())
        elif status == "fail":
            yield ActionOutcome(False, data.strip())


def classify_result(stdout: str) -> ActionOutcome:
    """Return the last marker in ``stdout``; no marker at all is a failure."""

    outcomes: List[ActionOutcome] = list(iter_outcomes(stdout))
    if not outcomes:
        return ActionOutcome(False, "no result marker in output")
    return outcomes[-1]


__all__ = ["ActionOutcome", "RESULT_MARKER", "classify_result", "iter_outcomes"]
