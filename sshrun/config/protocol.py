from __future__ import annotations

import enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from .duration import parse_duration


def _to_kebab(name: str) -> str:
    return name.replace("_", "-")


class _BaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_kebab,
        populate_by_name=True,
    )


class Platform(str, enum.Enum):
    """Operating system family of the remote hosts."""

    POSIX = "posix"
    WINDOWS = "windows"


class TransferMethod(str, enum.Enum):
    """How scripts are uploaded to remote hosts."""

    SFTP = "sftp"
    RSYNC = "rsync"


class SshConnectionOptions(_BaseModel):
    """SSH connection options.

    These fields map to parameters across three layers:
    - SSH client: ssh(1) -o options (used for rsync uploads)
    - Paramiko: SSHClient.connect() kwargs
      https://docs.paramiko.org/en/stable/api/client.html
    - Fabric: Connection() constructor
      https://docs.fabfile.org/en/stable/api/connection.html
    """

    model_config = ConfigDict(frozen=True)

    # Connection
    # SSH: ConnectTimeout | Paramiko: timeout | Fabric: connect_timeout
    connect_timeout: float = Field(default=10, gt=0, allow_inf_nan=False)
    # SSH: Compression | Paramiko: compress
    compress: bool = False
    # SSH: ServerAliveInterval | Paramiko: transport.set_keepalive()
    server_alive_interval: Optional[int] = Field(default=None, ge=1)

    # Authentication
    # Paramiko: allow_agent - use SSH agent for key lookup
    allow_agent: bool = True
    # Paramiko: look_for_keys - search ~/.ssh/ for keys
    look_for_keys: bool = True
    # SSH: -i | Paramiko: key_filename
    key: Optional[str] = None

    # Timeouts
    # Paramiko: banner_timeout - wait for SSH banner
    banner_timeout: Optional[float] = Field(default=None, ge=0)
    # Paramiko: auth_timeout - wait for auth response
    auth_timeout: Optional[float] = Field(default=None, ge=0)
    # Paramiko: channel_timeout - wait for channel open
    channel_timeout: Optional[float] = Field(default=None, ge=0)

    # Host key verification
    # SSH: StrictHostKeyChecking
    # Paramiko: SSHClient.set_missing_host_key_policy()
    strict_host_key_checking: bool = True
    # SSH: UserKnownHostsFile
    # Paramiko: SSHClient.load_host_keys()
    known_hosts_file: Optional[str] = None

    # Forwarding
    # SSH: ForwardAgent | Fabric: forward_agent
    forward_agent: bool = False

    # Algorithm restrictions
    # Paramiko: disabled_algorithms - disable specific algorithms
    # (Paramiko/Fabric only, no SSH CLI equivalent)
    disabled_algorithms: Optional[Dict[str, List[str]]] = None

    @field_validator("connect_timeout", mode="before")
    @classmethod
    def parse_connect_timeout(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_duration(v)
        return v


class Target(_BaseModel):
    """A remote machine to run a job on."""

    model_config = ConfigDict(frozen=True)
    user: str = Field(..., min_length=1)
    host: str = Field(..., min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    password: Optional[str] = Field(default=None, repr=False)
    sudo_password: Optional[str] = Field(default=None, repr=False)

    @property
    def label(self) -> str:
        """Format as user@host[:port]."""
        label = f"{self.user}@{self.host}"
        if self.port != 22:
            label += f":{self.port}"
        return label


class Settings(_BaseModel):
    """Top-level sshrun settings, all optional."""

    user: Optional[str] = None
    port: int = Field(default=22, ge=1, le=65535)
    concurrency: int = Field(default=5, ge=1)
    inventory: str = Field(default="inventory", min_length=1)
    commands_file: str = Field(default="lines.txt", min_length=1)
    posix_tmp_dir: str = Field(default="/tmp", min_length=1)
    windows_tmp_dir: str = Field(default="C:\\tmp", min_length=1)
    ssh_options: SshConnectionOptions = Field(
        default_factory=lambda: SshConnectionOptions()
    )
