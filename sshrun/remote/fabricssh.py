"""Fabric-based remote session."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from types import TracebackType
from typing import Optional

import paramiko  # type: ignore[import-untyped]
from fabric import Connection  # type: ignore[import-untyped]
from invoke.exceptions import AuthFailure  # type: ignore[import-untyped]
from invoke.runners import Result  # type: ignore[import-untyped]

from ..config import SshConnectionOptions, Target
from .session import RemoteError

logger = logging.getLogger(__name__)

_LIBRARY_ERRORS = (paramiko.SSHException, OSError, EOFError, AuthFailure)


def _build_connection(
    target: Target,
    opts: SshConnectionOptions,
) -> Connection:
    """Build a Fabric Connection for a target."""
    connect_kwargs: dict[str, object] = {
        "allow_agent": opts.allow_agent,
        "look_for_keys": opts.look_for_keys,
        "compress": opts.compress,
    }
    if target.password:
        connect_kwargs["password"] = target.password
    if opts.banner_timeout is not None:
        connect_kwargs["banner_timeout"] = opts.banner_timeout
    if opts.auth_timeout is not None:
        connect_kwargs["auth_timeout"] = opts.auth_timeout
    if opts.channel_timeout is not None:
        connect_kwargs["channel_timeout"] = opts.channel_timeout
    if opts.disabled_algorithms is not None:
        connect_kwargs["disabled_algorithms"] = opts.disabled_algorithms
    if opts.key:
        connect_kwargs["key_filename"] = str(Path(opts.key).expanduser())

    conn = Connection(
        host=target.host,
        port=target.port,
        user=target.user,
        connect_kwargs=connect_kwargs,
        connect_timeout=opts.connect_timeout,
        forward_agent=opts.forward_agent,
    )

    if opts.strict_host_key_checking:
        conn.client.load_system_host_keys()
        conn.client.set_missing_host_key_policy(paramiko.RejectPolicy())
    else:
        conn.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    if opts.known_hosts_file is not None:
        conn.client.load_host_keys(
            str(Path(opts.known_hosts_file).expanduser())
        )

    return conn


def _completed(
    command: str, result: Result
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(
        args=command,
        returncode=result.exited,
        stdout=result.stdout,
        stderr=result.stderr,
    )


class FabricSession:
    """A remote session backed by a single Fabric Connection.

    The connection opens lazily on first use and is closed by
    :meth:`close` or when leaving the ``with`` block.
    """

    def __init__(self, target: Target, options: SshConnectionOptions):
        self.target = target
        self.options = options
        self._conn = _build_connection(target, options)
        self._keepalive_set = False

    def _prepare(self) -> None:
        interval = self.options.server_alive_interval
        if interval is not None and not self._keepalive_set:
            self._conn.open()
            self._conn.transport.set_keepalive(interval)
            self._keepalive_set = True

    def run(self, command: str) -> subprocess.CompletedProcess[str]:
        """Run a command, returning its status and output."""
        logger.debug("%s: run %s", self.target.label, command)
        try:
            self._prepare()
            result = self._conn.run(
                command, warn=True, hide=True, in_stream=False
            )
        except _LIBRARY_ERRORS as e:
            raise RemoteError(self._describe(e)) from e
        return _completed(command, result)

    def sudo(
        self, command: str, password: Optional[str]
    ) -> subprocess.CompletedProcess[str]:
        """Run a command through sudo.

        Without a password, ``sudo -n`` is used so that a host
        requiring one fails instead of waiting on a prompt.
        """
        logger.debug("%s: sudo %s", self.target.label, command)
        try:
            self._prepare()
            if password is None:
                result = self._conn.run(
                    f"sudo -n {command}",
                    warn=True,
                    hide=True,
                    in_stream=False,
                )
            else:
                result = self._conn.sudo(
                    command,
                    password=password,
                    warn=True,
                    hide=True,
                    in_stream=False,
                )
        except _LIBRARY_ERRORS as e:
            raise RemoteError(self._describe(e)) from e
        return _completed(command, result)

    def put(self, local_path: str, remote_path: str) -> None:
        """Upload a file over SFTP."""
        logger.debug(
            "%s: upload %s -> %s", self.target.label, local_path, remote_path
        )
        try:
            self._prepare()
            self._conn.put(local_path, remote=remote_path)
        except _LIBRARY_ERRORS as e:
            raise RemoteError(f"sftp upload failed: {e}") from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> FabricSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _describe(self, e: BaseException) -> str:
        match e:
            case paramiko.AuthenticationException():
                return f"authentication failed: {e}"
            case paramiko.BadHostKeyException():
                return f"host key verification failed: {e}"
            case AuthFailure():
                return "sudo authentication failed"
            case paramiko.SSHException():
                return f"ssh error: {e}"
            case _:
                return f"dial {self.target.host}:{self.target.port}: {e}"


def open_session(
    target: Target, options: SshConnectionOptions
) -> FabricSession:
    """Create a Fabric-backed session for *target*."""
    return FabricSession(target, options)
