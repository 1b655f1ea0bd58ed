from __future__ import annotations

import pytest

from clawfleet.domain.instance import AmcpStatus, Instance, InstanceStatus, validate_instance_name


def test_from_dict_keeps_unknown_keys_and_legacy_key_field() -> None:
    instance = Instance.from_dict(
        {
            "name": "child-01",
            "ip": "198.51.100.7",
            "ssh_key": "~/.ssh/child01",
            "status": "DEGRADED",
            "amcp_aid": "BAbcdef",
            "parent_chat_id": 4242,
        }
    )

    assert instance.ssh_user == "root"
    assert instance.ssh_key_path == "~/.ssh/child01"
    assert instance.status is InstanceStatus.DEGRADED
    assert instance.amcp_status is AmcpStatus.ABSENT
    assert instance.parent_notify.chat_id == "4242"
    assert not instance.parent_notify.has_telegram
    assert instance.extra == {"amcp_aid": "BAbcdef"}

    payload = instance.to_dict()
    assert payload["amcp_aid"] == "BAbcdef"
    assert payload["ssh_key_path"] == "~/.ssh/child01"
    assert "ssh_key" not in payload
    assert "gateway_token" not in payload


def test_unrecognised_status_values_degrade_to_unknown() -> None:
    instance = Instance.from_dict({"name": "x1", "ip": "10.0.0.1", "status": "exploded", "amcp_status": "weird"})
    assert instance.status is InstanceStatus.UNKNOWN
    assert instance.amcp_status is AmcpStatus.ABSENT


@pytest.mark.parametrize("name", ["", "-lead", "has space", "a/b", "x" * 70])
def test_invalid_names_are_rejected(name: str) -> None:
    with pytest.raises(ValueError):
        validate_instance_name(name)


def test_missing_ip_is_rejected() -> None:
    with pytest.raises(ValueError, match="ip"):
        Instance.from_dict({"name": "child-01"})


def test_with_updates_merges_loose_keys_into_extra() -> None:
    base = Instance(name="child-01", ip="10.0.0.2", extra={"keep": True})
    updated = base.with_updates(status=InstanceStatus.HEALTHY, last_diagnosed_at="2026-10-18T09:00:00Z")

    assert updated.status is InstanceStatus.HEALTHY
    assert updated.extra == {"keep": True, "last_diagnosed_at": "2026-10-18T09:00:00Z"}
    assert base.extra == {"keep": True}
