"""SSH transport built on paramiko.

Scripts are streamed to ``bash -s`` over the channel's stdin so a whole probe
battery costs a single round trip. Connection-level failures are mapped onto
the fleet error taxonomy: credential problems become ``AuthFailure`` and
everything else (refused, timeout, no route, protocol errors) becomes
``Unreachable``. Nothing is retried here.
"""

from __future__ import annotations

import socket
import time
from pathlib import Path

import paramiko

from clawfleet.domain.errors import AuthFailure, Unreachable
from clawfleet.domain.instance import Instance
from clawfleet.ports.transport import CommandResult, RemoteSession, RemoteTransport

REMOTE_SHELL = "bash -s"


class SSHSession(RemoteSession):
    def __init__(self, client: paramiko.SSHClient, instance: Instance, *, command_timeout: float, connect_ms: int) -> None:
        self._client = client
        self._instance = instance
        self._command_timeout = command_timeout
        self.login_user = instance.ssh_user
        self.connect_ms = connect_ms

    def run(self, script: str, timeout: float | None = None) -> CommandResult:
        limit = timeout if timeout is not None else self._command_timeout
        try:
            stdin, stdout, _stderr = self._client.exec_command(REMOTE_SHELL, timeout=limit, get_pty=False)
            stdin.write(script)
            stdin.flush()
            stdin.channel.shutdown_write()
            output = stdout.read().decode("utf-8", errors="replace")
            status = stdout.channel.recv_exit_status()
        except socket.timeout as exc:
            raise Unreachable(self._instance.name, f"command timed out after {limit:g}s") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise Unreachable(self._instance.name, f"{type(exc).__name__}: {exc}") from exc
        return CommandResult(stdout=output, exit_status=status)

    def upload(self, content: str, remote_path: str) -> None:
        try:
            sftp = self._client.open_sftp()
            try:
                with sftp.open(remote_path, "w") as handle:
                    handle.write(content)
                sftp.chmod(remote_path, 0o600)
            finally:
                sftp.close()
        except (paramiko.SSHException, OSError) as exc:
            raise Unreachable(self._instance.name, f"upload to {remote_path} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class SSHTransport(RemoteTransport):
    """Opens one paramiko client per operation."""

    def __init__(self, *, connect_timeout: float = 10.0, command_timeout: float = 120.0, port: int = 22) -> None:
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._port = port

    def open(self, instance: Instance) -> SSHSession:
        key_filename = None
        if instance.ssh_key_path:
            key_path = Path(instance.ssh_key_path).expanduser()
            if not key_path.exists():
                raise AuthFailure(instance.name, f"ssh key not found: {key_path}")
            key_filename = str(key_path)

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        start = time.perf_counter()
        try:
            client.connect(
                hostname=instance.ip,
                port=self._port,
                username=instance.ssh_user,
                key_filename=key_filename,
                timeout=self._connect_timeout,
                banner_timeout=self._connect_timeout,
                auth_timeout=self._connect_timeout,
                allow_agent=key_filename is None,
                look_for_keys=key_filename is None,
            )
        except paramiko.PasswordRequiredException as exc:
            client.close()
            raise AuthFailure(instance.name, f"ssh key is encrypted: {exc}") from exc
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthFailure(instance.name, f"authentication rejected for {instance.ssh_user}@{instance.ip}") from exc
        except socket.timeout as exc:
            client.close()
            raise Unreachable(instance.name, f"connection to {instance.ip} timed out") from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise Unreachable(instance.name, f"cannot connect to {instance.ip}: {exc}") from exc
        connect_ms = int((time.perf_counter() - start) * 1000)
        return SSHSession(client, instance, command_timeout=self._command_timeout, connect_ms=connect_ms)


__all__ = ["SSHSession", "SSHTransport"]
