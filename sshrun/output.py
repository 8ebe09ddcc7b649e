"""CLI output formatting."""

from __future__ import annotations

from typing import Sequence

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import ConfigError, SkippedLine, Target
from .dispatch import HostResult


def print_config_error(
    e: ConfigError,
    *,
    console: Console | None = None,
) -> None:
    """Print a ConfigError as a Rich panel to stderr."""
    if console is None:
        console = Console(stderr=True)
    cause = e.__cause__
    match cause:
        case ValidationError():
            lines: list[str] = []
            for err in cause.errors():
                loc = " → ".join(str(p) for p in err["loc"])
                msg = err["msg"]
                if msg.startswith("Value error, "):
                    prefix_len = len("Value error, ")
                    msg = msg[prefix_len:]
                if loc:
                    lines.append(f"{loc}: {msg}")
                else:
                    lines.append(msg)
            body = "\n".join(lines)
        case _:
            body = str(e)
    console.print(Panel(body, title="Config error", style="red"))


def print_skipped_lines(
    skipped: Sequence[SkippedLine],
    *,
    console: Console | None = None,
) -> None:
    """Warn about inventory lines that were ignored.

    Only the line number is shown since lines may hold passwords.
    """
    if not skipped:
        return
    if console is None:
        console = Console(stderr=True)
    for line in skipped:
        console.print(
            Text(
                f"Skipping invalid inventory line {line.line_number}:"
                f" {line.reason}",
                style="yellow",
            )
        )


def print_human_targets(
    targets: Sequence[Target],
    *,
    console: Console | None = None,
) -> None:
    """Print the targets as a table."""
    if console is None:
        console = Console()
    table = Table(title="Targets:")
    table.add_column("#", justify="right")
    table.add_column("Host", style="bold")
    table.add_column("Port")
    table.add_column("User")
    table.add_column("Password")
    table.add_column("Sudo Password")

    for number, target in enumerate(targets, start=1):
        table.add_row(
            str(number),
            target.host,
            str(target.port),
            target.user,
            "yes" if target.password else "",
            "yes" if target.sudo_password else "",
        )

    console.print(table)


def print_host_result(
    result: HostResult,
    *,
    console: Console | None = None,
) -> None:
    """Print one host's block: a header, then output or error."""
    if console is None:
        console = Console()
    style = "green" if result.success else "red"
    console.rule(Text(f"=== {result.label} ===", style=f"bold {style}"))
    if result.output:
        console.print(Text(result.output.rstrip("\n")))
    if not result.success:
        console.print(Text(f"Error: {result.error}", style="red"))
        if result.stderr.strip():
            console.print(Text(result.stderr.rstrip("\n"), style="dim"))


def print_human_summary(
    results: Sequence[HostResult],
    *,
    console: Console | None = None,
) -> None:
    """Print a one-line tally and the failed hosts."""
    if console is None:
        console = Console()
    failed = [r for r in results if not r.success]
    ok = len(results) - len(failed)
    summary = Text()
    summary.append(f"{ok} succeeded", style="green")
    summary.append(", ")
    summary.append(f"{len(failed)} failed", style="red" if failed else "")
    console.print("")
    console.print(summary)
    for r in failed:
        console.print(Text(f"  ✗ {r.label}: {r.error}", style="red"))
