"""Repair-agent adapters."""

from .remote_agent import PROMPT_PATH, RemoteClaudeRepairAgent

__all__ = ["PROMPT_PATH", "RemoteClaudeRepairAgent"]
