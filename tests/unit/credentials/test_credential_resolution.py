"""Tests for git credential and author resolution."""
from __future__ import annotations

from pathlib import Path

import pytest

from buildtools.config import GitConfig
from buildtools.credentials import (
    AuthorIdentity,
    GitCredentials,
    resolve_author,
    resolve_credentials,
)
from buildtools.errors import CredentialError


class TestResolveCredentials:
    def test_defaults(self, tmp_path: Path):
        credentials = resolve_credentials(GitConfig(), home=tmp_path)

        assert credentials == GitCredentials(user="git", key_path=tmp_path / ".ssh" / "id_rsa", password="")

    def test_config_over_defaults(self, tmp_path: Path):
        git = GitConfig(user="deploy", key="~/other/id_rsa", password="secret")

        credentials = resolve_credentials(git, home=tmp_path)

        assert credentials.user == "deploy"
        assert credentials.key_path == tmp_path / "other" / "id_rsa"
        assert credentials.password == "secret"

    def test_cli_over_config(self, tmp_path: Path):
        git = GitConfig(user="deploy", key="~/other/id_rsa", password="secret")

        credentials = resolve_credentials(
            git,
            user="cli-user",
            key="/keys/cli",
            password="cli-secret",
            home=tmp_path,
        )

        assert credentials == GitCredentials(user="cli-user", key_path=Path("/keys/cli"), password="cli-secret")

    def test_home_from_environment(self, home: Path):
        credentials = resolve_credentials(GitConfig())

        assert credentials.key_path == home / ".ssh" / "id_rsa"

    def test_resolution_does_not_touch_the_key(self, tmp_path: Path):
        credentials = resolve_credentials(GitConfig(), key=str(tmp_path / "absent"))

        assert credentials.key_path == tmp_path / "absent"


class TestReadKey:
    def test_reads_existing_key(self, home: Path):
        credentials = resolve_credentials(GitConfig())

        assert b"PRIVATE KEY" in credentials.read_key()

    def test_missing_key_names_path(self):
        credentials = GitCredentials(user="git", key_path=Path("/missing/key"))

        with pytest.raises(CredentialError) as excinfo:
            credentials.read_key()

        assert str(excinfo.value) == "ssh key: open /missing/key: no such file or directory"


class TestResolveAuthor:
    def test_configured_identity(self):
        git = GitConfig(name="Some User", email="some.user@example.org")

        assert resolve_author(git) == AuthorIdentity("Some User", "some.user@example.org")

    def test_default_identity(self):
        assert resolve_author(GitConfig()) == AuthorIdentity("buildtools", "buildtools@localhost")
