"""Loader for the operator's local secrets document."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict

from clawfleet.domain.errors import ConfigError

# Environment fallbacks for keys commonly kept outside the credentials file.
_ENV_FALLBACKS = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "solvr_api_key": "SOLVR_API_KEY",
}


def load_credentials(path: Path) -> Dict[str, str]:
    """Return non-empty string credentials keyed by their local name."""

    data: Dict[str, str] = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text("utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"credentials file {path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"credentials file {path} must contain a JSON object")
        for key, value in raw.items():
            if value is None or isinstance(value, (dict, list)):
                continue
            text = str(value).strip()
            if text:
                data[str(key)] = text
    for key, env_name in _ENV_FALLBACKS.items():
        if key not in data and os.environ.get(env_name):
            data[key] = os.environ[env_name]
    return data


__all__ = ["load_credentials"]
