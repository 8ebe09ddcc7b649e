"""Tests for sshrun.output."""

from __future__ import annotations

import io

import pytest
from pydantic import ValidationError
from rich.console import Console

from sshrun.config import ConfigError, Settings, SkippedLine, Target
from sshrun.dispatch import HostResult
from sshrun.output import (
    print_config_error,
    print_host_result,
    print_human_summary,
    print_human_targets,
    print_skipped_lines,
)


def _console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=120, color_system=None), buf


def _ok(index: int = 0, host: str = "web1") -> HostResult:
    return HostResult(
        index=index,
        host=host,
        user="deploy",
        port=22,
        success=True,
        exit_code=0,
        output="up 3 days\n",
    )


def _failed(index: int = 1, host: str = "web2") -> HostResult:
    return HostResult(
        index=index,
        host=host,
        user="deploy",
        port=2222,
        success=False,
        error="authentication failed: bad password",
    )


class TestPrintHostResult:
    def test_success(self) -> None:
        console, buf = _console()
        print_host_result(_ok(), console=console)
        out = buf.getvalue()
        assert "=== deploy@web1 ===" in out
        assert "up 3 days" in out
        assert "Error" not in out

    def test_failure(self) -> None:
        console, buf = _console()
        print_host_result(_failed(), console=console)
        out = buf.getvalue()
        assert "deploy@web2:2222" in out
        assert "Error: authentication failed: bad password" in out

    def test_output_not_treated_as_markup(self) -> None:
        console, buf = _console()
        result = _ok().model_copy(update={"output": "[red]x[/red]\n"})
        print_host_result(result, console=console)
        assert "[red]x[/red]" in buf.getvalue()

    def test_failure_shows_stderr(self) -> None:
        console, buf = _console()
        result = _failed().model_copy(
            update={
                "exit_code": 2,
                "error": "command exited with status 2",
                "stderr": "No such file\n",
            }
        )
        print_host_result(result, console=console)
        out = buf.getvalue()
        assert "command exited with status 2" in out
        assert "No such file" in out


class TestPrintSummary:
    def test_counts_and_failed_hosts(self) -> None:
        console, buf = _console()
        print_human_summary([_ok(), _failed()], console=console)
        out = buf.getvalue()
        assert "1 succeeded, 1 failed" in out
        assert "deploy@web2:2222" in out


class TestPrintTargets:
    def test_hides_passwords(self) -> None:
        console, buf = _console()
        print_human_targets(
            [
                Target(
                    user="alice",
                    host="web1",
                    port=2222,
                    password="s3cret",
                    sudo_password="root",
                ),
                Target(user="bob", host="db1"),
            ],
            console=console,
        )
        out = buf.getvalue()
        assert "web1" in out
        assert "2222" in out
        assert "alice" in out
        assert "db1" in out
        assert "s3cret" not in out
        assert "root" not in out


class TestPrintSkippedLines:
    def test_reports_line_numbers(self) -> None:
        console, buf = _console()
        print_skipped_lines(
            [SkippedLine(line_number=4, reason="invalid port 'x'")],
            console=console,
        )
        assert "line 4: invalid port 'x'" in buf.getvalue()

    def test_nothing_skipped(self) -> None:
        console, buf = _console()
        print_skipped_lines([], console=console)
        assert buf.getvalue() == ""


class TestPrintConfigError:
    def test_plain_message(self) -> None:
        console, buf = _console()
        print_config_error(ConfigError("Boom happened"), console=console)
        out = buf.getvalue()
        assert "Config error" in out
        assert "Boom happened" in out

    def test_validation_error(self) -> None:
        console, buf = _console()
        with pytest.raises(ValidationError) as exc_info:
            Settings.model_validate({"port": 0})
        err = ConfigError(str(exc_info.value))
        err.__cause__ = exc_info.value
        print_config_error(err, console=console)
        out = buf.getvalue()
        assert "port:" in out
        assert "greater than or equal to 1" in out
