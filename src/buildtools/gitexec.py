"""Command runners for git operations."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


class ExecError(RuntimeError):
    """Raised when a command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{detail}")
        self.result = result

    @property
    def detail(self) -> str:
        """Last non-empty line of the command's diagnostic output."""
        lines = [
            line.strip()
            for line in (self.result.stderr or self.result.stdout).splitlines()
            if line.strip()
        ]
        return lines[-1] if lines else f"exit status {self.result.returncode}"


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> ExecResult:
    """Run command and return structured result."""
    merged_env = {**os.environ, **env} if env else None
    completed = subprocess.run(
        argv,
        cwd=cwd,
        env=merged_env,
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
    )
    result = ExecResult(
        argv=tuple(argv),
        cwd=cwd.resolve(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result


def run_git(
    args: list[str],
    *,
    repo_root: Path,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> ExecResult:
    """Run git command rooted at repo."""
    return run_command(["git", *args], cwd=repo_root, env=env, check=check, timeout=timeout)
