"""Ports (abstract boundaries) used by the application services."""
