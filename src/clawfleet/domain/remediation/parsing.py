"""Parsing of the repair agent's free-form output."""

from __future__ import annotations

import json
import re
from typing import Any, Dict

import jsonschema

from clawfleet.resources import load_json

from .value_objects import AgentFixResult, FixRecord

_ANSI = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_VALIDATOR: jsonschema.Draft202012Validator | None = None


def strip_ansi(text: str) -> str:
    return _ANSI.sub("", text)


def extract_json_object(text: str) -> Dict[str, Any] | None:
    """Return the first balanced top-level JSON object embedded in ``text``."""

    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1)
            continue
        if isinstance(value, dict):
            return value
        index = text.find("{", index + 1)
    return None


def _validator() -> jsonschema.Draft202012Validator:
    global _VALIDATOR
    if _VALIDATOR is None:
        _VALIDATOR = jsonschema.Draft202012Validator(load_json("agent_result.schema.json"))
    return _VALIDATOR


def parse_agent_output(raw: str) -> AgentFixResult:
    """Parse the agent's JSON verdict; unusable output yields a zeroed result."""

    cleaned = strip_ansi(raw)
    payload = extract_json_object(cleaned)
    if payload is None or not _validator().is_valid(payload):
        return AgentFixResult(parsed=False, raw_output=cleaned.strip())
    fixes = tuple(
        FixRecord(
            issue=str(item.get("issue", "")),
            action=str(item.get("action", "")),
            status=str(item.get("status", "unknown")),
            attempts=int(item.get("attempts", 0)),
        )
        for item in payload.get("fixes", [])
    )
    escalations = tuple(
        str(item.get("issue", item)) if isinstance(item, dict) else str(item)
        for item in payload.get("escalations", [])
    )
    return AgentFixResult(
        fixed=int(payload["fixed"]),
        escalated=int(payload["escalated"]),
        fixes=fixes,
        escalations=escalations,
    )


__all__ = ["extract_json_object", "parse_agent_output", "strip_ansi"]
