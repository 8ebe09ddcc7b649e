"""Shared test fixtures."""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from types import TracebackType
from typing import Callable, Optional

import pytest

from sshrun.config import SshConnectionOptions, Target

Responses = dict[str, subprocess.CompletedProcess[str]]

SAMPLE_INVENTORY = """\
# web tier
alice@web1.example.com:2222::s3cret:::sudo-s3cret
web2.example.com  # default user and port

bob@db1.example.com::p\\@ss
bad:port:here
"""

SAMPLE_SETTINGS_YAML = """\
user: deploy
port: 2200
concurrency: 3
inventory: hosts.txt
commands-file: cmds.txt
posix-tmp-dir: /var/tmp
ssh-options:
  connect-timeout: 30s
  strict-host-key-checking: false
  key: ~/.ssh/deploy
"""


class FakeSession:
    """In-memory RemoteSession recording every call."""

    def __init__(
        self,
        target: Target,
        options: SshConnectionOptions,
        responses: Optional[Responses] = None,
    ) -> None:
        self.target = target
        self.options = options
        self.responses = responses or {}
        self.calls: list[tuple[object, ...]] = []
        self.closed = False

    def _respond(self, command: str) -> subprocess.CompletedProcess[str]:
        if command in self.responses:
            return self.responses[command]
        return subprocess.CompletedProcess(
            args=command,
            returncode=0,
            stdout=f"{self.target.host}: ok\n",
            stderr="",
        )

    def run(self, command: str) -> subprocess.CompletedProcess[str]:
        self.calls.append(("run", command))
        return self._respond(command)

    def sudo(
        self, command: str, password: Optional[str]
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append(("sudo", command, password))
        return self._respond(command)

    def put(self, local_path: str, remote_path: str) -> None:
        self.calls.append(("put", local_path, remote_path))

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class RecordingFactory:
    """Session factory tracking how many sessions are open at once."""

    def __init__(
        self,
        delay: float = 0.0,
        responses: Optional[Responses] = None,
    ) -> None:
        self.delay = delay
        self.responses = responses
        self.sessions: list[FakeSession] = []
        self.open_count = 0
        self.max_open = 0
        self._lock = threading.Lock()

    def __call__(
        self, target: Target, options: SshConnectionOptions
    ) -> FakeSession:
        factory = self

        class _Tracked(FakeSession):
            def __enter__(self) -> FakeSession:
                with factory._lock:
                    factory.open_count += 1
                    factory.max_open = max(
                        factory.max_open, factory.open_count
                    )
                if factory.delay:
                    threading.Event().wait(factory.delay)
                return self

            def close(self) -> None:
                with factory._lock:
                    factory.open_count -= 1
                super().close()

        session = _Tracked(target, options, self.responses)
        with self._lock:
            self.sessions.append(session)
        return session


@pytest.fixture()
def target() -> Target:
    return Target(
        user="alice",
        host="web1.example.com",
        port=2222,
        password="s3cret",
    )


@pytest.fixture()
def target_minimal() -> Target:
    return Target(user="deploy", host="web2.example.com")


@pytest.fixture()
def ssh_options() -> SshConnectionOptions:
    return SshConnectionOptions()


@pytest.fixture()
def make_session(
    ssh_options: SshConnectionOptions,
) -> Callable[..., FakeSession]:
    def _make(
        target: Target,
        responses: Optional[Responses] = None,
    ) -> FakeSession:
        return FakeSession(target, ssh_options, responses)

    return _make


@pytest.fixture()
def recording_factory() -> Callable[..., RecordingFactory]:
    return RecordingFactory


@pytest.fixture()
def sample_inventory_file(tmp_path: Path) -> Path:
    p = tmp_path / "inventory"
    p.write_text(SAMPLE_INVENTORY)
    return p


@pytest.fixture()
def sample_settings_file(tmp_path: Path) -> Path:
    p = tmp_path / "config.yaml"
    p.write_text(SAMPLE_SETTINGS_YAML)
    return p


@pytest.fixture()
def commands_file(tmp_path: Path) -> Path:
    p = tmp_path / "lines.txt"
    p.write_text("uptime\n\nhostname\n")
    return p


@pytest.fixture()
def script_file(tmp_path: Path) -> Path:
    p = tmp_path / "deploy.sh"
    p.write_text("#!/bin/sh\necho deployed\n")
    return p
