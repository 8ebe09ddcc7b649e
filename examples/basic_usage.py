#!/usr/bin/env python3
"""
Basic usage example for sshrun as a library.

Parses an inventory, then runs a command batch on every target.
Pass ``--local`` to run the batch through a local shell instead of
SSH, which is handy for trying the dispatcher without any hosts.
"""

import subprocess
import sys

from sshrun.config import SshConnectionOptions, parse_inventory
from sshrun.dispatch import dispatch
from sshrun.jobs import CommandBatch
from sshrun.remote import RemoteError

INVENTORY = """\
# user@host:port::password:::sudo-password
deploy@web1.example.com
deploy@web2.example.com:2222
db1.example.com  # default user
"""


class LocalSession:
    """Runs commands with the local shell, ignoring the target."""

    def __init__(self, target, options):
        self.target = target

    def run(self, command):
        return subprocess.run(
            ["sh", "-c", command], capture_output=True, text=True
        )

    def sudo(self, command, password):
        return self.run(command)

    def put(self, local_path, remote_path):
        raise RemoteError("uploads need a real host")

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def main():
    """Demonstrate inventory parsing and dispatch."""
    print("sshrun - Basic Usage Example")
    print("=" * 50)

    inventory = parse_inventory(INVENTORY.splitlines(), default_user="ops")
    for target in inventory.targets:
        print(f"   {target.label}")
    print()

    batch = CommandBatch(commands=["hostname", "uptime"])
    kwargs = {}
    if "--local" in sys.argv:
        kwargs["session_factory"] = LocalSession

    results = dispatch(
        inventory.targets,
        batch,
        SshConnectionOptions(connect_timeout=5),
        concurrency=2,
        on_result=lambda r: print(f"=== {r.label} ===\n{r.output}"),
        **kwargs,
    )

    failed = [r for r in results if not r.success]
    print(f"{len(results) - len(failed)} succeeded, {len(failed)} failed")
    for r in failed:
        print(f"   {r.label}: {r.error}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
