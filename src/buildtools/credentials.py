"""Resolve git credentials and author identity for a promotion."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from buildtools.config import GitConfig
from buildtools.errors import CredentialError

DEFAULT_USER = "git"
DEFAULT_KEY = "~/.ssh/id_rsa"
DEFAULT_AUTHOR_NAME = "buildtools"
DEFAULT_AUTHOR_EMAIL = "buildtools@localhost"


@dataclass(frozen=True)
class GitCredentials:
    """SSH user, private key and optional key passphrase."""

    user: str
    key_path: Path
    password: str = ""

    def read_key(self) -> bytes:
        """Read the private key, failing the way an SSH client would."""
        try:
            return self.key_path.read_bytes()
        except OSError as exc:
            reason = exc.strerror or str(exc)
            raise CredentialError(f"ssh key: open {self.key_path}: {reason.lower()}") from exc


@dataclass(frozen=True)
class AuthorIdentity:
    name: str
    email: str


def expand_home(value: str, home: Path | None = None) -> Path:
    if home is not None and (value == "~" or value.startswith("~/")):
        return home / value[2:]
    return Path(os.path.expanduser(value))


def resolve_credentials(
    git: GitConfig,
    *,
    user: str | None = None,
    key: str | None = None,
    password: str | None = None,
    home: Path | None = None,
) -> GitCredentials:
    """Pick each credential from the CLI, then the config, then the defaults.

    Nothing is read from disk here; see ``GitCredentials.read_key``.
    """
    return GitCredentials(
        user=user or git.user or DEFAULT_USER,
        key_path=expand_home(key or git.key or DEFAULT_KEY, home),
        password=password or git.password or "",
    )


def resolve_author(git: GitConfig) -> AuthorIdentity:
    return AuthorIdentity(
        name=git.name or DEFAULT_AUTHOR_NAME,
        email=git.email or DEFAULT_AUTHOR_EMAIL,
    )
