from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from clawfleet.domain.errors import ConfigError
from clawfleet.domain.remediation import RetryPolicy
from clawfleet.settings import FleetPolicy, RuntimeSettings, load_policy, load_settings
from clawfleet.utils.telemetry import iter_events, record_structured_event


def test_packaged_defaults(runtime_settings: RuntimeSettings) -> None:
    policy = load_policy(runtime_settings)

    assert policy.fleet.max_workers == 8
    assert policy.transport.command_timeout == 120
    assert policy.retry.escalation_threshold == 3
    assert not policy.retry.persist_failures
    assert policy.knowledge.api_url == "https://api.solvr.dev/v1"


def test_user_policy_overrides_single_keys(runtime_settings: RuntimeSettings) -> None:
    runtime_settings.policy_file.write_text(
        "fleet:\n  max_workers: 3\nremediation:\n  persist_failures: true\nknowledge:\n  api_url: https://kb.internal/v2/\n",
        encoding="utf-8",
    )
    policy = load_policy(runtime_settings)

    assert policy.fleet.max_workers == 3
    assert policy.fleet.timeout == 300
    assert policy.retry.persist_failures
    assert policy.retry.max_attempts == 3
    assert policy.knowledge.api_url == "https://kb.internal/v2"


@pytest.mark.parametrize(
    "content",
    [
        "fleet: [unclosed",
        "- just\n- a list\n",
        "fleet:\n  max_workers: 0\n",
        "transport: 5\n",
        "remediation:\n  max_attempts: zero\n",
        "remediation:\n  persist_failures: \"false\"\n",
        "remediation:\n  persist_failures: 1\n",
    ],
)
def test_invalid_policy_is_config_error(runtime_settings: RuntimeSettings, content: str) -> None:
    runtime_settings.policy_file.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_policy(runtime_settings)


def test_policy_from_empty_mapping_uses_defaults() -> None:
    assert FleetPolicy.from_dict({}) == FleetPolicy()


def test_settings_follow_home_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAWFLEET_HOME", str(tmp_path / "fleet"))
    settings = load_settings()
    assert settings.instances_dir == tmp_path / "fleet" / "instances"
    assert settings.credentials_file == tmp_path / "fleet" / "instances" / "credentials.json"


def test_events_are_appended_as_json_lines(runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAWFLEET_TELEMETRY", "1")
    record_structured_event(runtime_settings, "fleet.diagnose", status="start", component="diagnose", instance="alpha")
    record_structured_event(runtime_settings, "fleet.diagnose", status="success", duration_ms=12.5, payload={"state": "healthy"})

    lines = (runtime_settings.log_dir / "telemetry.jsonl").read_text("utf-8").splitlines()
    first = json.loads(lines[0])
    assert first["instance"] == "alpha"
    assert first["level"] == "info"
    events = list(iter_events(runtime_settings))
    assert [event["status"] for event in events] == ["start", "success"]
    assert events[1]["durationMs"] == 12.5
    assert events[1]["payload"] == {"state": "healthy"}


def test_telemetry_can_be_disabled(runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAWFLEET_TELEMETRY", "off")
    record_structured_event(runtime_settings, "fleet.list")
    assert not (runtime_settings.log_dir / "telemetry.jsonl").exists()


def test_malformed_events_are_rejected(runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAWFLEET_TELEMETRY", "1")
    with pytest.raises(ValueError):
        record_structured_event(runtime_settings, "fleet.fix", level="debug")
    with pytest.raises(jsonschema.ValidationError):
        record_structured_event(runtime_settings, "fleet.fix", status="pending")


def test_retry_policy_rejects_non_boolean_persist_flag() -> None:
    with pytest.raises(ValueError, match="persist_failures"):
        RetryPolicy.from_dict({"persist_failures": "false"})
    assert RetryPolicy.from_dict({"persist_failures": False}).persist_failures is False
