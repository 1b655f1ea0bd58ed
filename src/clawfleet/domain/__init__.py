"""Domain model for fleet instances, diagnostics, bootstrap and remediation."""
