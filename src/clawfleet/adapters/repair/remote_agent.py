"""Runs the on-box coding agent over the transport."""

from __future__ import annotations

import shlex

from clawfleet.domain.errors import ConfigError
from clawfleet.domain.instance import Instance
from clawfleet.ports.collaborators import RepairAgent
from clawfleet.ports.transport import RemoteSession, tag_script

PROMPT_PATH = "/tmp/clawfleet-fix-prompt.md"


class RemoteClaudeRepairAgent(RepairAgent):
    """Uploads the prompt, runs ``claude --print`` once and returns its stdout."""

    def __init__(self, api_key: str | None, *, timeout: float = 900.0) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def repair(self, session: RemoteSession, instance: Instance, prompt: str) -> str:
        if not self._api_key:
            raise ConfigError("no anthropic_api_key in credentials or ANTHROPIC_API_KEY in environment")
        session.upload(prompt, PROMPT_PATH)
        body = (
            f"ANTHROPIC_API_KEY={shlex.quote(self._api_key)} "
            f'claude --print "$(cat {PROMPT_PATH})" 2>&1\n'
            f"rm -f {PROMPT_PATH}\n"
        )
        return session.run(tag_script("fix.agent", body), timeout=self._timeout).stdout


__all__ = ["PROMPT_PATH", "RemoteClaudeRepairAgent"]
