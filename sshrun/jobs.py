"""Jobs: the command batch or script executed on each host."""

from __future__ import annotations

import logging
import posixpath
import shlex
import subprocess
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

from .config import (
    ConfigError,
    Platform,
    SshConnectionOptions,
    Target,
    TransferMethod,
)
from .remote import RemoteError, RemoteSession, run_rsync_upload

logger = logging.getLogger(__name__)


class CommandBatch(BaseModel):
    """Commands sent to each host as one script in one session."""

    commands: list[str] = Field(..., min_length=1)

    @property
    def script(self) -> str:
        return "".join(f"{command}\n" for command in self.commands)


class ScriptJob(BaseModel):
    """A local script uploaded to each host, then executed."""

    local_path: str
    platform: Platform = Platform.POSIX
    transfer: TransferMethod = TransferMethod.SFTP
    posix_tmp_dir: str = "/tmp"
    windows_tmp_dir: str = "C:\\tmp"

    @property
    def name(self) -> str:
        return Path(self.local_path).name

    @property
    def remote_dir(self) -> str:
        match self.platform:
            case Platform.WINDOWS:
                return self.windows_tmp_dir.rstrip("\\/")
            case Platform.POSIX:
                return self.posix_tmp_dir.rstrip("/") or "/"

    @property
    def remote_path(self) -> str:
        """Path of the uploaded script in the host's own notation."""
        match self.platform:
            case Platform.WINDOWS:
                return f"{self.remote_dir}\\{self.name}"
            case Platform.POSIX:
                return posixpath.join(self.remote_dir, self.name)

    @property
    def upload_path(self) -> str:
        """Path of the uploaded script as SFTP expects it."""
        return self.remote_path.replace("\\", "/")


Job = Union[CommandBatch, ScriptJob]


class SudoPolicy(BaseModel):
    """Whether and how jobs escalate privileges."""

    enabled: bool = False
    password: Optional[str] = Field(default=None, repr=False)

    def applies_to(self, target: Target) -> bool:
        """Sudo is implied for targets carrying a sudo password."""
        return self.enabled or target.sudo_password is not None

    def password_for(self, target: Target) -> Optional[str]:
        """Pick the sudo password: inventory, run-wide, then SSH password."""
        return target.sudo_password or self.password or target.password


def load_command_batch(path: str) -> CommandBatch:
    """Read commands from a file, one per line, skipping blank lines."""
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Commands file not found: {path}")
    try:
        with open(p, encoding="utf-8") as f:
            commands = [
                line.rstrip("\r\n") for line in f if line.strip() != ""
            ]
    except OSError as e:
        raise ConfigError(f"Cannot read commands file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Commands file {path} is not valid UTF-8") from e
    if not commands:
        raise ConfigError(f"No commands in {path}")
    return CommandBatch(commands=commands)


def load_script_job(
    path: str,
    platform: Platform = Platform.POSIX,
    transfer: TransferMethod = TransferMethod.SFTP,
    sudo: bool = False,
    posix_tmp_dir: str = "/tmp",
    windows_tmp_dir: str = "C:\\tmp",
) -> ScriptJob:
    """Validate a script job before any host is contacted."""
    if not Path(path).is_file():
        raise ConfigError(f"Script not found: {path}")
    if platform is Platform.WINDOWS:
        if transfer is TransferMethod.RSYNC:
            raise ConfigError("rsync transfer is not supported on Windows")
        if sudo:
            raise ConfigError("--sudo is not supported on Windows")
    return ScriptJob(
        local_path=path,
        platform=platform,
        transfer=transfer,
        posix_tmp_dir=posix_tmp_dir,
        windows_tmp_dir=windows_tmp_dir,
    )


def execute(
    job: Job,
    session: RemoteSession,
    target: Target,
    options: SshConnectionOptions,
    sudo: SudoPolicy,
) -> subprocess.CompletedProcess[str]:
    """Run *job* on one host through an open session."""
    match job:
        case CommandBatch():
            return _run_batch(job, session, target, sudo)
        case ScriptJob(platform=Platform.WINDOWS):
            return _run_windows_script(job, session, target, sudo)
        case ScriptJob():
            return _run_posix_script(job, session, target, options, sudo)


def _run_batch(
    job: CommandBatch,
    session: RemoteSession,
    target: Target,
    sudo: SudoPolicy,
) -> subprocess.CompletedProcess[str]:
    if sudo.applies_to(target):
        return session.sudo(
            f"sh -c {shlex.quote(job.script)}", sudo.password_for(target)
        )
    else:
        return session.run(job.script)


def _upload_posix(
    job: ScriptJob,
    session: RemoteSession,
    target: Target,
    options: SshConnectionOptions,
) -> None:
    match job.transfer:
        case TransferMethod.SFTP:
            session.put(job.local_path, job.upload_path)
        case TransferMethod.RSYNC:
            check = session.run("command -v rsync")
            if check.returncode != 0 or not check.stdout.strip():
                raise RemoteError(f"rsync not found on host {target.host}")
            result = run_rsync_upload(
                target, options, job.local_path, job.remote_dir
            )
            if result.returncode != 0:
                raise RemoteError(f"rsync error: {result.stderr.strip()}")


def _run_posix_script(
    job: ScriptJob,
    session: RemoteSession,
    target: Target,
    options: SshConnectionOptions,
    sudo: SudoPolicy,
) -> subprocess.CompletedProcess[str]:
    _upload_posix(job, session, target, options)
    logger.info("%s: uploaded %s", target.label, job.remote_path)

    quoted = shlex.quote(job.remote_path)
    chmod = session.run(f"chmod +x {quoted}")
    if chmod.returncode != 0:
        raise RemoteError(
            f"chmod failed: {chmod.stderr.strip()}"
            if chmod.stderr.strip()
            else f"chmod failed with status {chmod.returncode}"
        )

    if sudo.applies_to(target):
        return session.sudo(quoted, sudo.password_for(target))
    else:
        return session.run(quoted)


def _run_windows_script(
    job: ScriptJob,
    session: RemoteSession,
    target: Target,
    sudo: SudoPolicy,
) -> subprocess.CompletedProcess[str]:
    if sudo.applies_to(target):
        raise RemoteError("sudo is not supported on Windows hosts")

    directory = job.remote_dir
    mkdir = session.run(
        "powershell -Command "
        f"\"if (!(Test-Path '{directory}')) "
        f"{{ New-Item -ItemType Directory -Path '{directory}' }}\""
    )
    if mkdir.returncode != 0:
        raise RemoteError(
            f"failed to create {directory}: {mkdir.stderr.strip()}"
        )

    session.put(job.local_path, job.upload_path)
    logger.info("%s: uploaded %s", target.label, job.remote_path)
    return session.run(f'cmd /C "{job.remote_path}"')
