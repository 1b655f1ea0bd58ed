"""Domain exports for fleet instance metadata."""

from .value_objects import AmcpStatus, Instance, InstanceStatus, ParentNotifyTarget, validate_instance_name

__all__ = [
    "AmcpStatus",
    "Instance",
    "InstanceStatus",
    "ParentNotifyTarget",
    "validate_instance_name",
]
