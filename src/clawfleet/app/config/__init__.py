"""Remote AMCP configuration management."""

from .service import KEY_MAPPING, SECRET_KEYS, SHOW_KEYS, ConfigService, ConfigView, PushResult, SetResult, mask_value

__all__ = [
    "ConfigService",
    "ConfigView",
    "KEY_MAPPING",
    "PushResult",
    "SECRET_KEYS",
    "SHOW_KEYS",
    "SetResult",
    "mask_value",
]
