"""Domain exports for the diagnostic battery."""

from .battery import (
    BATTERY,
    BATTERY_BY_ID,
    CHECK_DELIMITER,
    PROBE_VERSION,
    REMOTE_CHECKS,
    SSH_CHECK,
    CheckSpec,
    split_probe_output,
)
from .decoders import UNPARSEABLE, DecodeOptions, ProbeDecoder, mask_secret, short_handle
from .state import GATEWAY_CHECK, derive_state
from .value_objects import (
    CATEGORY_ORDER,
    CheckCategory,
    CheckOutcome,
    DiagnosticReport,
    HealthCheck,
    OverallState,
)

__all__ = [
    "BATTERY",
    "BATTERY_BY_ID",
    "CATEGORY_ORDER",
    "CHECK_DELIMITER",
    "CheckCategory",
    "CheckOutcome",
    "CheckSpec",
    "DecodeOptions",
    "DiagnosticReport",
    "GATEWAY_CHECK",
    "HealthCheck",
    "OverallState",
    "PROBE_VERSION",
    "ProbeDecoder",
    "REMOTE_CHECKS",
    "SSH_CHECK",
    "UNPARSEABLE",
    "derive_state",
    "mask_secret",
    "short_handle",
    "split_probe_output",
]
