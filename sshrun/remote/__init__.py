"""Remote sessions, SSH command building and file transfer."""

from .fabricssh import FabricSession, open_session
from .rsync import build_rsync_upload_command, run_rsync_upload
from .session import RemoteError, RemoteSession, SessionFactory
from .ssh import build_ssh_e_option, format_remote_path

__all__ = [
    "FabricSession",
    "RemoteError",
    "RemoteSession",
    "SessionFactory",
    "build_rsync_upload_command",
    "build_ssh_e_option",
    "format_remote_path",
    "open_session",
    "run_rsync_upload",
]
