"""Packaged resources for clawfleet: remote scripts, prompt templates, schemas."""

from __future__ import annotations

import json
import re
import shlex
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, Mapping

__all__ = ["load_json", "load_script", "load_text", "render"]

_PLACEHOLDER = re.compile(r"\{\{([A-Z0-9_]+)\}\}")


@lru_cache(maxsize=None)
def load_text(name: str) -> str:
    """Return the text of a packaged resource file."""

    return (resources.files(__name__) / name).read_text("utf-8")


@lru_cache(maxsize=None)
def load_json(name: str) -> Dict[str, Any]:
    return json.loads(load_text(name))


def load_script(name: str, **params: str) -> str:
    """Load ``scripts/<name>.sh`` with ``{{PARAM}}`` placeholders shell-quoted."""

    body = load_text(f"scripts/{name}.sh")
    return render(body, {key.upper(): shlex.quote(str(value)) for key, value in params.items()})


def render(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``{{KEY}}`` placeholders; unknown placeholders are an error."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            raise KeyError(f"missing template value: {key}")
        return values[key]

    return _PLACEHOLDER.sub(_replace, template)
