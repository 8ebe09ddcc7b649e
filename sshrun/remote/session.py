"""The remote session capability the dispatcher and jobs depend on."""

from __future__ import annotations

import subprocess
from types import TracebackType
from typing import Callable, Optional, Protocol

from ..config import SshConnectionOptions, Target


class RemoteError(Exception):
    """Raised when connecting, authenticating or transferring fails."""


class RemoteSession(Protocol):
    """One SSH connection to one target."""

    def run(self, command: str) -> subprocess.CompletedProcess[str]: ...

    def sudo(
        self, command: str, password: Optional[str]
    ) -> subprocess.CompletedProcess[str]: ...

    def put(self, local_path: str, remote_path: str) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> RemoteSession: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


SessionFactory = Callable[[Target, SshConnectionOptions], RemoteSession]
