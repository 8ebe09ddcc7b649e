"""sshrun: run commands and scripts on many hosts over SSH."""

__version__ = "0.1.0"
