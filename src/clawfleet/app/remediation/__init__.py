"""Remediation and escalation engine."""

from .service import RemediationService, build_prompt

__all__ = ["RemediationService", "build_prompt"]
