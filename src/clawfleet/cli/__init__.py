"""Command-line interface for clawfleet."""
