"""Remote transport adapters."""

from .ssh import SSHSession, SSHTransport

__all__ = ["SSHSession", "SSHTransport"]
