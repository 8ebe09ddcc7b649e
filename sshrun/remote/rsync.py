"""Script upload through the local rsync binary."""

from __future__ import annotations

import logging
import subprocess

from ..config import SshConnectionOptions, Target
from .session import RemoteError
from .ssh import build_ssh_e_option, format_remote_path

logger = logging.getLogger(__name__)


def build_rsync_upload_command(
    target: Target,
    opts: SshConnectionOptions,
    local_path: str,
    remote_dir: str,
) -> list[str]:
    """Build the rsync command copying *local_path* into *remote_dir*."""
    return [
        "rsync",
        *build_ssh_e_option(target, opts),
        local_path,
        format_remote_path(target, remote_dir.rstrip("/") + "/"),
    ]


def run_rsync_upload(
    target: Target,
    opts: SshConnectionOptions,
    local_path: str,
    remote_dir: str,
) -> subprocess.CompletedProcess[str]:
    """Upload a file with rsync.

    rsync runs ssh in batch mode, so only key or agent
    authentication works here.
    """
    cmd = build_rsync_upload_command(target, opts, local_path, remote_dir)
    logger.debug("%s: %s", target.label, " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise RemoteError("rsync is not installed locally") from e
