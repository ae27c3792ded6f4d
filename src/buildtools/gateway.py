"""GitOps repository gateway.

Clones the GitOps repository into a scratch directory, writes the rendered
descriptors below ``<path>/<build name>``, and commits and pushes only when
that changed the tree. Nothing is retried; the push is the only step that
touches the remote.
"""

from __future__ import annotations

import shlex
import subprocess
import tempfile
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from buildtools.credentials import AuthorIdentity, GitCredentials
from buildtools.errors import FilesystemError, GitTransportError
from buildtools.gitexec import ExecError, ExecResult, run_git
from buildtools.log import get_logger
from buildtools.render import DescriptorEntry

log = get_logger("gateway")

PASSPHRASE_ENV = "BUILDTOOLS_SSH_PASSPHRASE"


@dataclass(frozen=True)
class CommitOutcome:
    """What a promotion did to the GitOps repository."""

    attempted: bool
    hash: str | None = None
    pushed: bool = False


def commit_message(build_name: str, commit: str, target: str) -> str:
    return f"ci: promoting {build_name} commit {commit} to {target}"


def destination_path(path: str, build_name: str) -> PurePosixPath:
    """``<path>/<build name>`` relative to the repository root."""
    prefix = path.strip("/")
    destination = PurePosixPath(prefix, build_name) if prefix else PurePosixPath(build_name)
    if not build_name or any(part in ("..", ".") for part in destination.parts):
        raise FilesystemError(f"invalid destination path {destination!s} in GitOps repository")
    return destination


def write_descriptors(
    root: Path,
    destination: PurePosixPath,
    entries: Iterable[DescriptorEntry],
) -> list[Path]:
    """Write entries below ``root/destination``, overwriting existing files."""
    target_dir = root.joinpath(*destination.parts)
    written: list[Path] = []
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        for entry in entries:
            path = target_dir / entry.name
            path.write_bytes(entry.content)
            written.append(path)
    except OSError as exc:
        raise FilesystemError(f"unable to write descriptors to {target_dir}: {exc}") from exc
    return written


@contextmanager
def ssh_environment(credentials: GitCredentials, workdir: Path) -> Iterator[dict[str, str]]:
    """Environment making git authenticate with the resolved SSH key.

    The key is read first so a missing or unreadable key fails before any
    network access. An encrypted key gets its passphrase through an askpass
    helper written to ``workdir``.
    """
    credentials.read_key()

    ssh_command = [
        "ssh",
        "-i", shlex.quote(str(credentials.key_path)),
        "-l", shlex.quote(credentials.user),
        "-o", "IdentitiesOnly=yes",
        "-o", "StrictHostKeyChecking=no",
    ]
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if not credentials.password:
        ssh_command += ["-o", "BatchMode=yes"]
        env["GIT_SSH_COMMAND"] = " ".join(ssh_command)
        yield env
        return

    askpass_path = workdir / "ssh-askpass.sh"
    askpass_path.write_text(f"#!/bin/sh\nprintf '%s\\n' \"${{{PASSPHRASE_ENV}}}\"\n", encoding="utf-8")
    askpass_path.chmod(0o700)
    env.update(
        {
            "GIT_SSH_COMMAND": " ".join(ssh_command),
            "SSH_ASKPASS": str(askpass_path),
            "SSH_ASKPASS_REQUIRE": "force",
            "DISPLAY": ":0",
            PASSPHRASE_ENV: credentials.password,
        }
    )
    try:
        yield env
    finally:
        askpass_path.unlink(missing_ok=True)


class GitOpsRepository:
    """A remote GitOps repository that descriptors are promoted into."""

    def __init__(
        self,
        url: str,
        credentials: GitCredentials,
        author: AuthorIdentity,
        *,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.credentials = credentials
        self.author = author
        # Network operations are unbounded unless a caller opts in.
        self.timeout = timeout

    def promote(
        self,
        entries: list[DescriptorEntry],
        destination: PurePosixPath,
        message: str,
    ) -> CommitOutcome:
        with tempfile.TemporaryDirectory(prefix="buildtools-promote-") as scratch:
            scratch_dir = Path(scratch)
            with ssh_environment(self.credentials, scratch_dir) as env:
                clone_dir = scratch_dir / "repo"
                self._git(["clone", "--quiet", self.url, str(clone_dir)], scratch_dir, env, "clone")

                write_descriptors(clone_dir, destination, entries)

                self._git(["add", "--all", "--", destination.as_posix()], clone_dir, env, "stage")
                diff = self._git(
                    ["diff", "--cached", "--quiet", "--", destination.as_posix()],
                    clone_dir,
                    env,
                    "diff",
                    check=False,
                )
                if diff.returncode == 0:
                    log.info("nothing to commit, %s/%s already up to date", self.url, destination)
                    return CommitOutcome(attempted=False)
                if diff.returncode != 1:
                    raise GitTransportError(f"diff: {diff.stderr.strip()}")

                self._git(
                    [
                        "-c", f"user.name={self.author.name}",
                        "-c", f"user.email={self.author.email}",
                        "-c", "commit.gpgsign=false",
                        "commit", "--quiet", "--no-verify", "-m", message,
                    ],
                    clone_dir,
                    env,
                    "commit",
                )
                commit = self._git(["rev-parse", "HEAD"], clone_dir, env, "commit").stdout.strip()

                log.info("pushing commit %s to %s/%s", commit, self.url, destination)
                self._git(["push", "--quiet", "origin", "HEAD"], clone_dir, env, "push")
                return CommitOutcome(attempted=True, hash=commit, pushed=True)

    def _git(
        self,
        args: list[str],
        cwd: Path,
        env: Mapping[str, str],
        step: str,
        *,
        check: bool = True,
    ) -> ExecResult:
        try:
            return run_git(args, repo_root=cwd, env=env, check=check, timeout=self.timeout)
        except ExecError as exc:
            raise GitTransportError(f"{step} {self.url}: {exc.detail}") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitTransportError(f"{step} {self.url}: timed out after {exc.timeout}s") from exc
