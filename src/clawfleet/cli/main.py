#!/usr/bin/env python3
"""Entry point for the claw fleet CLI."""

from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from clawfleet import __version__
from clawfleet.adapters.instance import FileInstanceRepository, load_credentials
from clawfleet.adapters.knowledge import SolvrKnowledgeClient
from clawfleet.adapters.notify import ParentNotifier
from clawfleet.adapters.repair import RemoteClaudeRepairAgent
from clawfleet.adapters.transport import SSHTransport
from clawfleet.app.bootstrap import BootstrapService
from clawfleet.app.checkpoint import CheckpointCoordinator
from clawfleet.app.config import ConfigService
from clawfleet.app.diagnostics import DiagnosticService
from clawfleet.app.fleet import FleetService
from clawfleet.app.remediation import RemediationService
from clawfleet.domain.bootstrap import BootstrapReport, StepStatus
from clawfleet.domain.diagnostics import CheckOutcome, DiagnosticReport
from clawfleet.domain.errors import FleetError
from clawfleet.ports.transport import RemoteTransport
from clawfleet.settings import SETTINGS, FleetPolicy, load_policy
from clawfleet.utils.telemetry import record_structured_event

HELP_OVERVIEW = """Manage a fleet of remote agent instances.

  diagnose NAME        run the health battery against one instance
  monitor              diagnose every instance in parallel
  fix NAME             diagnose, repair once, escalate what is left
  setup-amcp NAME      bootstrap the AMCP identity/checkpoint subsystem
  config NAME          show, set or push remote AMCP config
  checkpoint NAME      take a checkpoint and record its CID
  list                 list known instances
"""

_OUTCOME_LABELS = {
    CheckOutcome.OK: "ok",
    CheckOutcome.WARN: "warn",
    CheckOutcome.ERROR: "FAIL",
}


@dataclass(frozen=True)
class FleetServices:
    repository: FileInstanceRepository
    policy: FleetPolicy
    diagnostics: DiagnosticService
    checkpoints: CheckpointCoordinator
    config: ConfigService
    bootstrap: BootstrapService
    fleet: FleetService
    remediation_factory: Callable[[], RemediationService]

    @property
    def remediation(self) -> RemediationService:
        return self.remediation_factory()


def _build_transport(policy: FleetPolicy) -> RemoteTransport:
    return SSHTransport(
        connect_timeout=policy.transport.connect_timeout,
        command_timeout=policy.transport.command_timeout,
    )


def _build_services() -> FleetServices:
    policy = load_policy(SETTINGS)
    repository = FileInstanceRepository(SETTINGS.instances_dir)
    transport = _build_transport(policy)

    def credentials() -> Dict[str, str]:
        return load_credentials(SETTINGS.credentials_file)

    diagnostics = DiagnosticService(repository, transport, stale_after_hours=policy.stale_checkpoint_hours)
    checkpoints = CheckpointCoordinator(repository, transport)
    config = ConfigService(repository, transport, credentials)
    bootstrap = BootstrapService(
        repository,
        transport,
        config,
        checkpoints,
        watchdog_interval=policy.watchdog_interval,
        settings=SETTINGS,
    )

    def remediation() -> RemediationService:
        secrets = credentials()
        knowledge = None
        if secrets.get("solvr_api_key"):
            knowledge = SolvrKnowledgeClient(
                secrets["solvr_api_key"],
                api_url=policy.knowledge.api_url,
                timeout=policy.knowledge.timeout,
            )
        return RemediationService(
            repository,
            transport,
            diagnostics,
            RemoteClaudeRepairAgent(secrets.get("anthropic_api_key")),
            policy=policy.retry,
            knowledge=knowledge,
            notifier=ParentNotifier(),
            settings=SETTINGS,
        )

    fleet = FleetService(
        repository,
        diagnostics,
        max_workers=policy.fleet.max_workers,
        timeout=policy.fleet.timeout,
    )
    return FleetServices(
        repository=repository,
        policy=policy,
        diagnostics=diagnostics,
        checkpoints=checkpoints,
        config=config,
        bootstrap=bootstrap,
        fleet=fleet,
        remediation_factory=remediation,
    )


def _instrumented(
    command: str,
    context: Dict[str, Any],
    action: Callable[[FleetServices], Tuple[int, Dict[str, Any]]],
) -> int:
    """Run ``action`` with start/success/error telemetry around it."""

    instance = context.get("instance")
    record_structured_event(SETTINGS, f"fleet.{command}", status="start", component=command, instance=instance, payload=context)
    start = time.perf_counter()
    try:
        services = _build_services()
        exit_code, summary = action(services)
    except FleetError as exc:
        duration = (time.perf_counter() - start) * 1000
        record_structured_event(
            SETTINGS,
            f"fleet.{command}",
            status="error",
            level="error",
            component=command,
            instance=instance,
            duration_ms=duration,
            payload=context | {"error": type(exc).__name__, "message": str(exc)},
        )
        print(f"{command} failed: {exc}", file=sys.stderr)
        return 1

    duration = (time.perf_counter() - start) * 1000
    record_structured_event(
        SETTINGS,
        f"fleet.{command}",
        status="success" if exit_code == 0 else "error",
        level="info" if exit_code == 0 else "error",
        component=command,
        instance=instance,
        duration_ms=duration,
        payload=context | summary,
    )
    return exit_code


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _print_report(report: DiagnosticReport) -> None:
    print(f"diagnose: {report.instance} ({report.ip}) at {report.timestamp}")
    for category, checks in report.by_category().items():
        print(f"  {category.value}:")
        for check in checks:
            print(f"    [{_OUTCOME_LABELS[check.outcome]:>4}] {check.check_id}: {check.detail}")
    print(f"state: {report.overall_state.value}")
    print(f"checks: {report.checks_passed} passed, {report.checks_warned} warned, {report.checks_failed} failed")


def _diagnose_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        report = services.diagnostics.diagnose(args.name)
        if args.json:
            _print_json(report.to_dict())
        else:
            _print_report(report)
        summary = {
            "state": report.overall_state.value,
            "passed": report.checks_passed,
            "warned": report.checks_warned,
            "failed": report.checks_failed,
        }
        if report.transport_failure:
            print(f"diagnose failed: {report.instance} is {report.transport_failure}", file=sys.stderr)
            return 1, summary
        return 0, summary

    return _instrumented("diagnose", {"instance": args.name}, action)


def _monitor_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        fleet = services.fleet
        if args.workers:
            fleet = FleetService(
                services.repository,
                services.diagnostics,
                max_workers=args.workers,
                timeout=services.policy.fleet.timeout,
            )
        summary = fleet.diagnose_all()
        if args.json:
            _print_json(summary.to_dict())
        elif not summary.entries:
            print("monitor: no instances registered")
        else:
            print("monitor:")
            for entry in summary.entries:
                if entry.report is not None:
                    report = entry.report
                    print(
                        f"  {entry.instance:<24} {entry.state:<12} "
                        f"{report.checks_passed} ok / {report.checks_warned} warn / {report.checks_failed} fail"
                    )
                else:
                    print(f"  {entry.instance:<24} {entry.state:<12} {entry.error}")
            counts = summary.counts()
            print("totals: " + ", ".join(f"{key}={value}" for key, value in counts.items() if value))
        return 0, {"counts": summary.counts()}

    return _instrumented("monitor", {}, action)


def _list_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        instances = services.repository.list()
        if args.json:
            _print_json({"instances": [instance.to_dict() for instance in instances]})
        elif not instances:
            print("list: no instances registered")
        else:
            print("instances:")
            for instance in instances:
                print(
                    f"  - {instance.name} {instance.ip} status={instance.status.value} "
                    f"amcp={instance.amcp_status.value}"
                )
        for name, reason in services.repository.skipped.items():
            print(f"warning: skipped {name}: {reason}", file=sys.stderr)
        return 0, {"count": len(instances)}

    return _instrumented("list", {}, action)


def _fix_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        result = services.remediation.fix(args.name)
        if args.json:
            _print_json(result.to_dict())
        else:
            print(f"fix: {result.instance} -> {result.outcome.value}")
            for fix in result.details.get("agent", {}).get("fixes", []):
                print(f"  - {fix['issue']}: {fix['status']} ({fix['action']})")
            if result.escalation is not None:
                if result.escalation.delivered:
                    print(f"escalated via {', '.join(result.escalation.channels)}")
                else:
                    print(f"escalation not delivered: {result.escalation.error}")
            for warning in result.warnings:
                print(f"warning: {warning}")
            print(f"fixed: {result.fixed}, escalated: {result.escalated}")
        return 0, {"outcome": result.outcome.value, "fixed": result.fixed, "escalated": result.escalated}

    return _instrumented("fix", {"instance": args.name}, action)


def _print_bootstrap(report: BootstrapReport) -> None:
    title = "setup-amcp (dry run)" if report.dry_run else "setup-amcp"
    print(f"{title}: {report.instance}")
    if report.dry_run:
        for step in report.plan:
            print(f"  [{step.planned_action.value}] {step.capability.value} ({step.current_state.value})")
        if report.preflight_error:
            print(f"warning: {report.preflight_error}")
    else:
        for result in report.results:
            marker = {StepStatus.DONE: "done", StepStatus.SKIPPED: "skip", StepStatus.FAILED: "FAIL"}.get(result.status, "?")
            print(f"  [{marker}] {result.step.capability.value}: {result.message}")
        print(f"amcp_status: {report.amcp_status}")
    print(", ".join(f"{key}: {value}" for key, value in report.counts().items()))


def _setup_amcp_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        report = services.bootstrap.run(args.name, force=args.force, dry_run=args.dry_run)
        if args.json:
            _print_json(report.to_dict())
        else:
            _print_bootstrap(report)
        return 0, {"counts": report.counts(), "amcp_status": report.amcp_status}

    context = {"instance": args.name, "force": args.force, "dry_run": args.dry_run}
    return _instrumented("setup-amcp", context, action)


def _parse_assignment(raw: str) -> Tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError("expected key=value")
    return key, value


def _config_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        if args.push:
            pushed = services.config.push(args.name)
            if args.json:
                _print_json(pushed.to_dict())
            else:
                for key in pushed.pushed:
                    print(f"  pushed {key}")
                for key in pushed.failed:
                    print(f"  FAILED {key}")
                print(f"{len(pushed.pushed)} pushed, {len(pushed.skipped)} skipped, {len(pushed.failed)} failed")
            return (0 if not pushed.failed else 1), {"pushed": len(pushed.pushed), "failed": len(pushed.failed)}
        if args.set:
            key, value = args.set
            result = services.config.set(args.name, key, value)
            if args.json:
                _print_json(result.to_dict())
            elif result.verified:
                print(f"{key} set and verified")
            elif result.applied:
                print(f"{key} set but readback differs ({result.readback or 'empty'})")
            else:
                print(f"{key} could not be set")
            return (0 if result.applied else 1), {"key": key, "verified": result.verified}
        view = services.config.show(args.name)
        if args.json:
            _print_json(view.to_dict())
        else:
            print(f"config: {view.instance}")
            for key, value in view.values.items():
                print(f"  {key + ':':<26} {value}")
        return 0, {"keys": len(view.values)}

    mode = "push" if args.push else "set" if args.set else "show"
    return _instrumented("config", {"instance": args.name, "mode": mode}, action)


def _checkpoint_cmd(args: argparse.Namespace) -> int:
    def action(services: FleetServices) -> Tuple[int, Dict[str, Any]]:
        result = services.checkpoints.checkpoint(args.name, full=args.full)
        if args.json:
            _print_json(result.to_dict())
        elif result.cid:
            print(f"checkpoint: {result.cid}")
            print(f"  type:      {'full' if result.full else 'quick'}")
            print(f"  principal: {result.principal}")
            print(f"  timestamp: {result.timestamp}")
        else:
            print(f"checkpoint completed but {result.warning}")
            for line in result.output_tail:
                print(f"  {line}")
        return 0, {"cid_captured": result.cid is not None, "full": result.full}

    return _instrumented("checkpoint", {"instance": args.name, "full": args.full}, action)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claw",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"claw {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    diagnose = sub.add_parser("diagnose", help="Run the health battery against one instance")
    diagnose.add_argument("name", help="Instance name")
    diagnose.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    diagnose.set_defaults(func=_diagnose_cmd)

    monitor = sub.add_parser("monitor", help="Diagnose every instance in parallel")
    monitor.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    monitor.add_argument("--workers", type=int, default=0, help="Override fleet.max_workers")
    monitor.set_defaults(func=_monitor_cmd)

    list_cmd = sub.add_parser("list", help="List known instances")
    list_cmd.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    list_cmd.set_defaults(func=_list_cmd)

    fix = sub.add_parser("fix", help="Diagnose, repair once and escalate what remains")
    fix.add_argument("name", help="Instance name")
    fix.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    fix.set_defaults(func=_fix_cmd)

    setup = sub.add_parser("setup-amcp", help="Bootstrap the AMCP subsystem idempotently")
    setup.add_argument("name", help="Instance name")
    setup.add_argument("--force", action="store_true", help="Recreate identity and re-push config")
    setup.add_argument("--dry-run", action="store_true", help="Print the plan without changing anything")
    setup.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    setup.set_defaults(func=_setup_amcp_cmd)

    config = sub.add_parser("config", help="Show, set or push remote AMCP config")
    config.add_argument("name", help="Instance name")
    mode = config.add_mutually_exclusive_group()
    mode.add_argument("--show", action="store_true", help="Show config with secrets masked (default)")
    mode.add_argument("--set", type=_parse_assignment, metavar="KEY=VALUE", help="Set one key and verify it")
    mode.add_argument("--push", action="store_true", help="Push mapped keys from credentials.json")
    config.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    config.set_defaults(func=_config_cmd)

    checkpoint = sub.add_parser("checkpoint", help="Take a checkpoint and record its CID")
    checkpoint.add_argument("name", help="Instance name")
    checkpoint.add_argument("--full", action="store_true", help="Run a full checkpoint")
    checkpoint.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    checkpoint.set_defaults(func=_checkpoint_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
