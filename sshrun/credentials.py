"""Pre-flight check that some SSH authentication method is usable."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from .config import ConfigError, SshConnectionOptions, Target

logger = logging.getLogger(__name__)

DEFAULT_KEY_NAMES = ("id_rsa", "id_ed25519", "id_ecdsa")


def find_default_keys(ssh_dir: Path | None = None) -> list[Path]:
    """Return the default private keys present in ``~/.ssh``."""
    directory = ssh_dir if ssh_dir is not None else Path.home() / ".ssh"
    return [
        directory / name
        for name in DEFAULT_KEY_NAMES
        if (directory / name).is_file()
    ]


def agent_available() -> bool:
    """Check whether an SSH agent socket is advertised."""
    return bool(os.environ.get("SSH_AUTH_SOCK"))


def check_credentials(
    targets: Sequence[Target],
    password: str | None,
    options: SshConnectionOptions,
    ssh_dir: Path | None = None,
) -> None:
    """Raise ``ConfigError`` if no target could possibly authenticate."""
    if password:
        return
    elif targets and all(t.password for t in targets):
        return
    elif options.key is not None:
        key_path = Path(options.key).expanduser()
        if key_path.is_file():
            logger.debug("Using configured key %s", key_path)
            return
        else:
            raise ConfigError(f"SSH key file not found: {options.key}")
    elif options.look_for_keys and (keys := find_default_keys(ssh_dir)):
        logger.debug("Found default keys: %s", ", ".join(map(str, keys)))
        return
    elif options.allow_agent and agent_available():
        logger.debug("Using SSH agent")
        return
    else:
        raise ConfigError(
            "No password provided and no usable private key found"
        )
