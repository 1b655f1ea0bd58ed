"""Value objects describing a managed child instance."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping

_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9_-]{0,63})$", re.IGNORECASE)

# Keys owned by the typed fields below; anything else round-trips via ``extra``.
_MODELLED_KEYS = frozenset(
    {
        "name",
        "ip",
        "ssh_user",
        "ssh_key_path",
        "ssh_key",
        "region",
        "status",
        "gateway_token",
        "amcp_status",
        "last_checkpoint_cid",
        "parent_telegram_token",
        "parent_chat_id",
        "parent_email",
    }
)


class InstanceStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OFFLINE = "offline"
    UNREACHABLE = "unreachable"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "InstanceStatus":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class AmcpStatus(str, Enum):
    ABSENT = "absent"
    BOOTSTRAPPED = "bootstrapped"
    DEGRADED = "degraded"

    @classmethod
    def parse(cls, value: Any) -> "AmcpStatus":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.ABSENT


def validate_instance_name(name: str) -> str:
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise ValueError(f"invalid instance name: {name!r}")
    return name


@dataclass(frozen=True)
class ParentNotifyTarget:
    """Where escalations for a child are delivered. Opaque to the core."""

    telegram_token: str | None = None
    chat_id: str | None = None
    email: str | None = None

    @property
    def has_telegram(self) -> bool:
        return bool(self.telegram_token and self.chat_id)

    @property
    def is_empty(self) -> bool:
        return not (self.has_telegram or self.email)


@dataclass(frozen=True)
class Instance:
    name: str
    ip: str
    ssh_user: str = "root"
    ssh_key_path: str | None = None
    region: str | None = None
    status: InstanceStatus = InstanceStatus.UNKNOWN
    gateway_token: str | None = None
    amcp_status: AmcpStatus = AmcpStatus.ABSENT
    last_checkpoint_cid: str | None = None
    parent_notify: ParentNotifyTarget = field(default_factory=ParentNotifyTarget)
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_instance_name(self.name)
        if not self.ip or not str(self.ip).strip():
            raise ValueError(f"instance '{self.name}' has no ip")
        if not self.ssh_user:
            raise ValueError(f"instance '{self.name}' has empty ssh_user")

    def with_status(self, status: InstanceStatus) -> "Instance":
        return replace(self, status=status)

    def with_updates(self, **changes: Any) -> "Instance":
        """Return a copy with typed fields replaced and unknown keys merged into ``extra``."""

        typed = {key: value for key, value in changes.items() if key in self.__dataclass_fields__}
        loose = {key: value for key, value in changes.items() if key not in self.__dataclass_fields__}
        if loose:
            merged = dict(self.extra)
            merged.update(loose)
            typed["extra"] = merged
        return replace(self, **typed)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "name": self.name,
                "ip": self.ip,
                "ssh_user": self.ssh_user,
                "status": self.status.value,
                "amcp_status": self.amcp_status.value,
            }
        )
        optional = {
            "ssh_key_path": self.ssh_key_path,
            "region": self.region,
            "gateway_token": self.gateway_token,
            "last_checkpoint_cid": self.last_checkpoint_cid,
            "parent_telegram_token": self.parent_notify.telegram_token,
            "parent_chat_id": self.parent_notify.chat_id,
            "parent_email": self.parent_notify.email,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, name: str | None = None) -> "Instance":
        if not isinstance(data, Mapping):
            raise ValueError("instance metadata must be a JSON object")
        resolved_name = name or data.get("name")
        if not resolved_name:
            raise ValueError("instance metadata missing 'name'")
        ip = data.get("ip")
        if not ip:
            raise ValueError(f"instance '{resolved_name}' metadata missing 'ip'")
        parent = ParentNotifyTarget(
            telegram_token=_optional_str(data.get("parent_telegram_token")),
            chat_id=_optional_str(data.get("parent_chat_id")),
            email=_optional_str(data.get("parent_email")),
        )
        return cls(
            name=str(resolved_name),
            ip=str(ip),
            ssh_user=str(data.get("ssh_user") or "root"),
            ssh_key_path=_optional_str(data.get("ssh_key_path") or data.get("ssh_key")),
            region=_optional_str(data.get("region")),
            status=InstanceStatus.parse(data.get("status", "unknown")),
            gateway_token=_optional_str(data.get("gateway_token")),
            amcp_status=AmcpStatus.parse(data.get("amcp_status", "absent")),
            last_checkpoint_cid=_optional_str(data.get("last_checkpoint_cid")),
            parent_notify=parent,
            extra={key: value for key, value in data.items() if key not in _MODELLED_KEYS},
        )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "AmcpStatus",
    "Instance",
    "InstanceStatus",
    "ParentNotifyTarget",
    "validate_instance_name",
]
