"""Tests for sshrun.credentials."""

from __future__ import annotations

from pathlib import Path

import pytest

from sshrun.config import ConfigError, SshConnectionOptions, Target
from sshrun.credentials import (
    agent_available,
    check_credentials,
    find_default_keys,
)


@pytest.fixture()
def empty_ssh_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".ssh"
    d.mkdir()
    return d


@pytest.fixture()
def no_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)


class TestFindDefaultKeys:
    def test_finds_present_keys(self, empty_ssh_dir: Path) -> None:
        (empty_ssh_dir / "id_ed25519").write_text("key")
        (empty_ssh_dir / "id_ed25519.pub").write_text("pub")
        assert find_default_keys(empty_ssh_dir) == [
            empty_ssh_dir / "id_ed25519"
        ]

    def test_none_present(self, empty_ssh_dir: Path) -> None:
        assert find_default_keys(empty_ssh_dir) == []


class TestAgentAvailable:
    def test_socket_set(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SSH_AUTH_SOCK", "/tmp/agent.sock")
        assert agent_available() is True

    def test_socket_unset(self, no_agent: None) -> None:
        assert agent_available() is False


class TestCheckCredentials:
    def test_global_password(
        self, target_minimal: Target, empty_ssh_dir: Path, no_agent: None
    ) -> None:
        check_credentials(
            [target_minimal], "pw", SshConnectionOptions(), empty_ssh_dir
        )

    def test_every_target_has_password(
        self, target: Target, empty_ssh_dir: Path, no_agent: None
    ) -> None:
        check_credentials(
            [target], None, SshConnectionOptions(), empty_ssh_dir
        )

    def test_some_targets_without_password(
        self,
        target: Target,
        target_minimal: Target,
        empty_ssh_dir: Path,
        no_agent: None,
    ) -> None:
        with pytest.raises(ConfigError, match="no usable private key"):
            check_credentials(
                [target, target_minimal],
                None,
                SshConnectionOptions(),
                empty_ssh_dir,
            )

    def test_default_key(
        self, target_minimal: Target, empty_ssh_dir: Path, no_agent: None
    ) -> None:
        (empty_ssh_dir / "id_rsa").write_text("key")
        check_credentials(
            [target_minimal], None, SshConnectionOptions(), empty_ssh_dir
        )

    def test_default_key_ignored_without_look_for_keys(
        self, target_minimal: Target, empty_ssh_dir: Path, no_agent: None
    ) -> None:
        (empty_ssh_dir / "id_rsa").write_text("key")
        with pytest.raises(ConfigError):
            check_credentials(
                [target_minimal],
                None,
                SshConnectionOptions(look_for_keys=False),
                empty_ssh_dir,
            )

    def test_configured_key(
        self,
        target_minimal: Target,
        empty_ssh_dir: Path,
        tmp_path: Path,
        no_agent: None,
    ) -> None:
        key = tmp_path / "deploy_key"
        key.write_text("key")
        check_credentials(
            [target_minimal],
            None,
            SshConnectionOptions(key=str(key)),
            empty_ssh_dir,
        )

    def test_configured_key_missing(
        self, target_minimal: Target, empty_ssh_dir: Path, tmp_path: Path
    ) -> None:
        with pytest.raises(ConfigError, match="key file not found"):
            check_credentials(
                [target_minimal],
                None,
                SshConnectionOptions(key=str(tmp_path / "missing")),
                empty_ssh_dir,
            )

    def test_agent(
        self,
        target_minimal: Target,
        empty_ssh_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("SSH_AUTH_SOCK", "/tmp/agent.sock")
        check_credentials(
            [target_minimal], None, SshConnectionOptions(), empty_ssh_dir
        )

    def test_agent_disabled(
        self,
        target_minimal: Target,
        empty_ssh_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("SSH_AUTH_SOCK", "/tmp/agent.sock")
        with pytest.raises(ConfigError):
            check_credentials(
                [target_minimal],
                None,
                SshConnectionOptions(allow_agent=False),
                empty_ssh_dir,
            )
