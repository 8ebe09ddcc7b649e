"""SSH client command line building for rsync transfers."""

from __future__ import annotations

import math
import shlex
from pathlib import Path

from ..config import SshConnectionOptions, Target


def _ssh_o_options(opts: SshConnectionOptions) -> list[str]:
    """Derive SSH -o option values from structured options."""
    result = [
        f"ConnectTimeout={max(1, math.ceil(opts.connect_timeout))}",
        "BatchMode=yes",
    ]
    if opts.compress:
        result.append("Compression=yes")
    if opts.server_alive_interval is not None:
        result.append(f"ServerAliveInterval={opts.server_alive_interval}")
    if not opts.strict_host_key_checking:
        result.append("StrictHostKeyChecking=no")
    if opts.known_hosts_file is not None:
        result.append(f"UserKnownHostsFile={opts.known_hosts_file}")
    if opts.forward_agent:
        result.append("ForwardAgent=yes")
    return result


def build_ssh_command(
    target: Target,
    opts: SshConnectionOptions,
) -> list[str]:
    """Build the ssh invocation used as rsync's remote shell.

    Returns args like:
        ssh -o ConnectTimeout=10 -o BatchMode=yes [opts]
    """
    parts = ["ssh"]
    for opt in _ssh_o_options(opts):
        parts.extend(["-o", opt])
    if target.port != 22:
        parts.extend(["-p", str(target.port)])
    if opts.key:
        parts.extend(["-i", str(Path(opts.key).expanduser())])
    return parts


def build_ssh_e_option(
    target: Target,
    opts: SshConnectionOptions,
) -> list[str]:
    """Build rsync's -e option for SSH with custom port/key.

    Returns a list like:
        ["-e", "ssh -o ConnectTimeout=10 -o BatchMode=yes -p 2222"]
    """
    return ["-e", shlex.join(build_ssh_command(target, opts))]


def format_remote_path(target: Target, path: str) -> str:
    """Format a remote path as user@host:path."""
    return f"{target.user}@{target.host}:{path}"
