"""Diagnostic engine application service."""

from .service import DiagnosticService, build_probe_script

__all__ = ["DiagnosticService", "build_probe_script"]
