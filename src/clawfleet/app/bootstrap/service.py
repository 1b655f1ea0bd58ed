"""Application service bringing a child's AMCP subsystem to the target state."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

from clawfleet.app.checkpoint import CheckpointCoordinator
from clawfleet.app.config import ConfigService
from clawfleet.domain.bootstrap import (
    FATAL_CAPABILITIES,
    IDENTITY_PREFIX,
    INSTALLER,
    BootstrapProbe,
    BootstrapReport,
    BootstrapStep,
    Capability,
    PlannedAction,
    StepResult,
    StepStatus,
    needs_installer,
    parse_bootstrap_probe,
    plan_bootstrap,
)
from clawfleet.domain.errors import ActionFailed, InstallerUnavailable
from clawfleet.domain.instance import AmcpStatus, Instance
from clawfleet.domain.markers import classify_result
from clawfleet.ports.instance_repository import InstanceRepository
from clawfleet.ports.transport import RemoteSession, RemoteTransport, tag_script
from clawfleet.resources import load_script
from clawfleet.settings import RuntimeSettings
from clawfleet.utils.clock import Clock, isoformat, utc_now
from clawfleet.utils.telemetry import record_structured_event

StepOutcome = Tuple[str, Dict[str, Any]]


class BootstrapService:
    """Probe once, plan, then execute the non-skip steps in capability order."""

    def __init__(
        self,
        repository: InstanceRepository,
        transport: RemoteTransport,
        config: ConfigService,
        checkpoints: CheckpointCoordinator,
        *,
        watchdog_interval: int = 120,
        settings: RuntimeSettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._transport = transport
        self._config = config
        self._checkpoints = checkpoints
        self._watchdog_interval = watchdog_interval
        self._settings = settings
        self._clock = clock

    def run(self, name: str, *, force: bool = False, dry_run: bool = False) -> BootstrapReport:
        instance = self._repository.get(name)
        with self._transport.open(instance) as session:
            probe = self.probe(session)
            plan = tuple(plan_bootstrap(probe, force=force))
            blocked = needs_installer(probe)
            if dry_run:
                preflight = str(InstallerUnavailable(INSTALLER, [cap.value for cap in blocked])) if blocked else None
                return BootstrapReport(instance=instance.name, dry_run=True, force=force, plan=plan, preflight_error=preflight)
            if blocked:
                raise InstallerUnavailable(INSTALLER, [cap.value for cap in blocked])
            results, updates = self._execute(instance, session, plan, probe)

        degraded = any(result.status is StepStatus.FAILED for result in results)
        amcp_status = AmcpStatus.DEGRADED if degraded else AmcpStatus.BOOTSTRAPPED
        updates["amcp_setup_at"] = isoformat(self._clock())
        current = self._repository.get(instance.name)
        self._repository.put(current.with_updates(amcp_status=amcp_status, **updates))
        return BootstrapReport(
            instance=instance.name,
            dry_run=False,
            force=force,
            plan=plan,
            results=tuple(results),
            amcp_status=amcp_status.value,
            metadata_updates={key: value for key, value in updates.items() if key != "amcp_seed"},
        )

    def probe(self, session: RemoteSession) -> BootstrapProbe:
        result = session.run(tag_script("bootstrap.probe", load_script("bootstrap_probe")))
        return parse_bootstrap_probe(result.stdout)

    # ---- Internals

    def _execute(
        self,
        instance: Instance,
        session: RemoteSession,
        plan: Tuple[BootstrapStep, ...],
        probe: BootstrapProbe,
    ) -> Tuple[List[StepResult], Dict[str, Any]]:
        handlers: Dict[Capability, Callable[[Instance, RemoteSession, BootstrapStep], StepOutcome]] = {
            Capability.AMCP_CLI: self._install_amcp_cli,
            Capability.PROACTIVE_AMCP: self._install_proactive_amcp,
            Capability.IDENTITY: self._create_identity,
            Capability.CONFIG: self._push_config,
            Capability.WATCHDOG: self._install_watchdog,
            Capability.FIRST_CHECKPOINT: self._first_checkpoint,
        }
        results: List[StepResult] = []
        updates: Dict[str, Any] = {}
        for step in plan:
            if step.planned_action is PlannedAction.SKIP:
                results.append(StepResult(step, StepStatus.SKIPPED, "already present"))
                continue
            try:
                message, step_updates = handlers[step.capability](instance, session, step)
            except ActionFailed as exc:
                if step.capability in FATAL_CAPABILITIES:
                    raise
                self._warn(instance, step, exc.reason)
                results.append(StepResult(step, StepStatus.FAILED, exc.reason))
                continue
            if step.capability is Capability.IDENTITY:
                # The previous identity is already moved aside on the child.
                current = self._repository.get(instance.name)
                self._repository.put(current.with_updates(**step_updates))
            updates.update(step_updates)
            results.append(StepResult(step, StepStatus.DONE, message))
        return results, updates

    def _run_action(self, session: RemoteSession, step: BootstrapStep, script_name: str, **params: str) -> str:
        operation = f"bootstrap.{step.capability.value}.{step.planned_action.value}"
        stdout = session.run(tag_script(operation, load_script(script_name, **params))).stdout
        outcome = classify_result(stdout)
        if not outcome.ok:
            raise ActionFailed(step.capability.value, outcome.reason)
        return outcome.data

    def _install_amcp_cli(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        version = self._run_action(session, step, "install_amcp_cli")
        if not version:
            raise ActionFailed(step.capability.value, "installed but no version reported")
        return f"installed {version}", {}

    def _install_proactive_amcp(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        version = self._run_action(session, step, "install_proactive_amcp")
        if not version:
            raise ActionFailed(step.capability.value, "installed but no version reported")
        return f"installed {version}", {}

    def _create_identity(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        recreate = step.planned_action is PlannedAction.RECREATE
        data = self._run_action(session, step, "create_identity", recreate="yes" if recreate else "no")
        aid, _, seed = data.partition(":")
        if not aid.startswith(IDENTITY_PREFIX):
            raise ActionFailed(step.capability.value, f"created identity has invalid handle {aid[:12]!r}")
        if recreate and aid == step.detail:
            raise ActionFailed(step.capability.value, "recreated identity kept the previous handle")
        updates = {
            "amcp_aid": aid,
            "amcp_seed": seed,
            "amcp_identity_created": isoformat(self._clock()),
        }
        return f"{'recreated' if recreate else 'created'} {aid[:12]}...", updates

    def _push_config(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        result = self._config.push_in_session(instance, session)
        if result.failed:
            raise ActionFailed(step.capability.value, f"failed keys: {', '.join(result.failed)}")
        if not result.pushed:
            raise ActionFailed(step.capability.value, "no keys pushed")
        return f"{len(result.pushed)} pushed, {len(result.skipped)} skipped", {}

    def _install_watchdog(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        self._run_action(session, step, "install_watchdog", interval=str(self._watchdog_interval))
        return "watchdog active", {}

    def _first_checkpoint(self, instance: Instance, session: RemoteSession, step: BootstrapStep) -> StepOutcome:
        result = self._checkpoints.run_in_session(instance, session)
        if result.cid is None:
            return f"checkpoint completed; {result.warning}", {}
        updates = {"last_checkpoint_cid": result.cid, "last_checkpoint_at": result.timestamp}
        return f"checkpoint {result.cid[:16]}...", updates

    def _warn(self, instance: Instance, step: BootstrapStep, reason: str) -> None:
        if self._settings is None:
            return
        record_structured_event(
            self._settings,
            "bootstrap.step",
            status="warning",
            level="warn",
            component="bootstrap",
            instance=instance.name,
            payload={"capability": step.capability.value, "action": step.planned_action.value, "reason": reason},
        )


__all__ = ["BootstrapService"]
