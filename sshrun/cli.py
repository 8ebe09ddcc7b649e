"""Typer CLI: run and hosts commands."""

from __future__ import annotations

import getpass
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from .config import (
    ConfigError,
    Inventory,
    InventoryLineError,
    Platform,
    Settings,
    SshConnectionOptions,
    Target,
    TransferMethod,
    load_inventory,
    load_settings,
    parse_duration,
    parse_inventory_line,
)
from .credentials import check_credentials
from .dispatch import HostResult, dispatch
from .jobs import Job, SudoPolicy, load_command_batch, load_script_job
from .output import (
    print_config_error,
    print_host_result,
    print_human_summary,
    print_human_targets,
    print_skipped_lines,
)

_LIBRARY_LOGGERS = ("paramiko", "invoke", "fabric")

app = typer.Typer(
    name="sshrun",
    help="Run commands and scripts on many hosts over SSH",
    no_args_is_help=True,
)

HostOption = Annotated[
    Optional[str],
    typer.Option(
        "--host",
        "-h",
        help="Single [user@]host[:port] target instead of the inventory",
    ),
]
InventoryOption = Annotated[
    Optional[str],
    typer.Option("--inventory", "-i", help="Path to the inventory file"),
]
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="Default SSH username"),
]
PortOption = Annotated[
    Optional[int],
    typer.Option("--port", "-p", min=1, max=65535, help="Default SSH port"),
]
ConfigOption = Annotated[
    Optional[str],
    typer.Option("--config", help="Path to settings file"),
]
VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (-v, -vv, -vvv)",
    ),
]


@app.command()
def run(
    host: HostOption = None,
    inventory: InventoryOption = None,
    user: UserOption = None,
    port: PortOption = None,
    file: Annotated[
        Optional[str],
        typer.Option(
            "--file",
            "-f",
            help="File of commands, run as one script per host",
        ),
    ] = None,
    script: Annotated[
        Optional[str],
        typer.Option(
            "--script",
            "-s",
            help="Local script to upload and execute on each host",
        ),
    ] = None,
    timeout: Annotated[
        Optional[str],
        typer.Option(
            "--timeout",
            "-t",
            help="SSH connection timeout (e.g. 10s, 1m)",
        ),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option(
            "--concurrency",
            "-c",
            min=1,
            help="Maximum number of hosts contacted at once",
        ),
    ] = None,
    password: Annotated[
        bool,
        typer.Option("--password", "-w", help="Prompt for SSH password"),
    ] = False,
    sudo: Annotated[
        bool,
        typer.Option("--sudo", help="Run the commands or script with sudo"),
    ] = False,
    sudo_password: Annotated[
        bool,
        typer.Option(
            "--sudo-password", "-W", help="Prompt for sudo password"
        ),
    ] = False,
    platform: Annotated[
        Platform,
        typer.Option("--platform", help="Remote operating system family"),
    ] = Platform.POSIX,
    transfer: Annotated[
        TransferMethod,
        typer.Option(
            "--transfer",
            help="Script upload method (rsync needs key or agent auth)",
        ),
    ] = TransferMethod.SFTP,
    ordered: Annotated[
        bool,
        typer.Option(
            "--ordered",
            help="Print results in inventory order once all hosts finish",
        ),
    ] = False,
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Run a command batch or a script on one or many hosts."""
    _configure_logging(verbose)
    settings = _load_settings_or_exit(config)
    try:
        if file is not None and script is not None:
            raise ConfigError("--file and --script are mutually exclusive")
        options = _connection_options(settings, timeout)
        job = _load_job(settings, file, script, platform, transfer, sudo)
        inv = _resolve_inventory(settings, host, inventory, user, port)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)

    print_skipped_lines(inv.skipped)

    ssh_password = (
        typer.prompt("Password", hide_input=True) if password else None
    )
    sudo_pw = (
        typer.prompt("Sudo password", hide_input=True)
        if sudo_password
        else None
    )
    targets = [_with_password(t, ssh_password) for t in inv.targets]

    try:
        check_credentials(targets, ssh_password, options)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)

    console = Console()
    limit = concurrency if concurrency is not None else settings.concurrency

    def on_result(result: HostResult) -> None:
        print_host_result(result, console=console)

    with console.status(f"Running on {len(targets)} host(s)..."):
        results = dispatch(
            targets,
            job,
            options,
            concurrency=limit,
            sudo=SudoPolicy(enabled=sudo, password=sudo_pw),
            on_result=None if ordered else on_result,
        )

    if ordered:
        for result in results:
            print_host_result(result, console=console)

    print_human_summary(results, console=console)

    if any(not r.success for r in results):
        raise typer.Exit(1)


@app.command()
def hosts(
    host: HostOption = None,
    inventory: InventoryOption = None,
    user: UserOption = None,
    port: PortOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Show the targets parsed from the inventory."""
    _configure_logging(verbose)
    settings = _load_settings_or_exit(config)
    try:
        inv = _resolve_inventory(settings, host, inventory, user, port)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)

    print_skipped_lines(inv.skipped)
    print_human_targets(inv.targets)


def _configure_logging(verbose: int) -> None:
    """Send log records to stderr through Rich."""
    match verbose:
        case 0:
            level = logging.WARNING
        case 1:
            level = logging.INFO
        case _:
            level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if verbose >= 3 else logging.WARNING
        )


def _load_settings_or_exit(config_path: str | None) -> Settings:
    """Load settings or exit with code 2 on error."""
    try:
        return load_settings(config_path)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)


def _connection_options(
    settings: Settings, timeout: str | None
) -> SshConnectionOptions:
    """Apply command-line overrides to the configured SSH options."""
    options = settings.ssh_options
    if timeout is not None:
        try:
            seconds = parse_duration(timeout)
        except ValueError as e:
            raise ConfigError(f"Invalid --timeout: {e}") from e
        try:
            options = SshConnectionOptions.model_validate(
                {**options.model_dump(), "connect_timeout": seconds}
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid --timeout: {timeout}") from e
    return options


def _load_job(
    settings: Settings,
    file: str | None,
    script: str | None,
    platform: Platform,
    transfer: TransferMethod,
    sudo: bool,
) -> Job:
    if script is not None:
        return load_script_job(
            script,
            platform=platform,
            transfer=transfer,
            sudo=sudo,
            posix_tmp_dir=settings.posix_tmp_dir,
            windows_tmp_dir=settings.windows_tmp_dir,
        )
    else:
        return load_command_batch(file or settings.commands_file)


def _default_user(user: str | None, settings: Settings) -> str:
    if user:
        return user
    elif settings.user:
        return settings.user
    else:
        try:
            return getpass.getuser()
        except (KeyError, OSError) as e:
            raise ConfigError("Cannot determine the current user") from e


def _resolve_inventory(
    settings: Settings,
    host: str | None,
    inventory: str | None,
    user: str | None,
    port: int | None,
) -> Inventory:
    """Build the target list from --host or the inventory file."""
    default_user = _default_user(user, settings)
    default_port = port if port is not None else settings.port

    if host is not None:
        try:
            target = parse_inventory_line(host, default_user, default_port)
        except InventoryLineError as e:
            raise ConfigError(f"Invalid --host {host!r}: {e}") from e
        if target is None:
            raise ConfigError("--host must not be empty")
        return Inventory(targets=[target])
    else:
        path = inventory or settings.inventory
        if not Path(path).is_file():
            raise ConfigError(
                f"No --host provided and inventory file not found: {path}"
            )
        inv = load_inventory(path, default_user, default_port)
        if not inv.targets:
            reasons = "".join(
                f"\n  line {s.line_number}: {s.reason}" for s in inv.skipped
            )
            raise ConfigError(f"No targets found in {path}{reasons}")
        return inv


def _with_password(target: Target, password: str | None) -> Target:
    """Fill in the run-wide password for targets without their own."""
    if password and not target.password:
        return target.model_copy(update={"password": password})
    else:
        return target


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
