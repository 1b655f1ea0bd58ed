"""Application services orchestrating fleet operations."""
