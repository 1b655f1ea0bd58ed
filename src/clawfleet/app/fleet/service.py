"""Bounded-parallel diagnosis of every instance in the fleet."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from clawfleet.app.diagnostics import DiagnosticService
from clawfleet.domain.diagnostics import DiagnosticReport, OverallState
from clawfleet.domain.errors import FleetError
from clawfleet.ports.instance_repository import InstanceRepository


@dataclass(frozen=True)
class FleetEntry:
    instance: str
    report: DiagnosticReport | None = None
    error: str | None = None

    @property
    def state(self) -> str:
        return self.report.overall_state.value if self.report else "error"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"instance": self.instance, "state": self.state}
        if self.report is not None:
            payload["report"] = self.report.to_dict()
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class FleetSummary:
    entries: List[FleetEntry] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in OverallState}
        counts["error"] = 0
        for entry in self.entries:
            counts[entry.state] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": len(self.entries),
            "counts": self.counts(),
            "instances": [entry.to_dict() for entry in self.entries],
        }


class FleetService:
    def __init__(
        self,
        repository: InstanceRepository,
        diagnostics: DiagnosticService,
        *,
        max_workers: int = 8,
        timeout: float = 300.0,
    ) -> None:
        self._repository = repository
        self._diagnostics = diagnostics
        self._max_workers = max_workers
        self._timeout = timeout

    def diagnose_all(self, names: Iterable[str] | None = None) -> FleetSummary:
        """Diagnose every instance; one instance's failure never touches another's entry."""

        targets = sorted(names) if names is not None else [instance.name for instance in self._repository.list()]
        if not targets:
            return FleetSummary()
        results: Dict[str, FleetEntry] = {}
        executor = ThreadPoolExecutor(max_workers=min(self._max_workers, len(targets)))
        try:
            futures: Dict[Future[DiagnosticReport], str] = {
                executor.submit(self._diagnostics.diagnose, name): name for name in targets
            }
            try:
                for future in as_completed(futures, timeout=self._timeout):
                    name = futures[future]
                    try:
                        results[name] = FleetEntry(instance=name, report=future.result())
                    except FleetError as exc:
                        results[name] = FleetEntry(instance=name, error=str(exc))
                    except Exception as exc:  # noqa: BLE001
                        results[name] = FleetEntry(instance=name, error=f"{type(exc).__name__}: {exc}")
            except FuturesTimeout:
                for future, name in futures.items():
                    if name not in results:
                        future.cancel()
                        results[name] = FleetEntry(instance=name, error=f"timed out after {self._timeout:g}s")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return FleetSummary(entries=[results[name] for name in targets])


__all__ = ["FleetEntry", "FleetService", "FleetSummary"]
