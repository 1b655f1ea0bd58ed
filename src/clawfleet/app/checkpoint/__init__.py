"""Checkpoint coordinator."""

from .service import CID_PATTERN, CheckpointCoordinator, CheckpointResult, extract_cid

__all__ = ["CID_PATTERN", "CheckpointCoordinator", "CheckpointResult", "extract_cid"]
