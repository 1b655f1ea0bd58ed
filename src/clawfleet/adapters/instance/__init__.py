"""Filesystem-backed instance metadata storage."""

from .credentials import load_credentials
from .file_repository import FileInstanceRepository

__all__ = ["FileInstanceRepository", "load_credentials"]
