"""Adapters implementing clawfleet ports."""
