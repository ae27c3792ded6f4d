"""CI metadata: which commit, branch and build are being promoted.

Providers are probed in a fixed order and the first one whose marker
variable is present wins. Any field a provider leaves empty falls back to
the local git checkout of the working directory.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from buildtools.gitexec import ExecError, run_git
from buildtools.log import get_logger

log = get_logger("ci")


def normalize_build_name(raw: str) -> str:
    """Lowercase the build name and rewrite ``_`` to ``-``."""
    return raw.strip().lower().replace("_", "-")


def branch_replace_slash(branch: str) -> str:
    """Branch name usable as an image tag."""
    return branch.replace("/", "_")


@dataclass(frozen=True)
class BuildIdentity:
    """Commit, branch and normalized build name of the current build."""

    commit: str
    branch: str
    build_name: str

    @property
    def identified(self) -> bool:
        return bool(self.commit) and bool(self.branch)


class CIProvider(Protocol):
    name: str

    def active(self, environ: Mapping[str, str]) -> bool: ...

    def identify(self, directory: Path, environ: Mapping[str, str]) -> BuildIdentity: ...


@dataclass(frozen=True)
class LocalGit:
    """Reads HEAD from the working directory's own repository."""

    name: str = "git"

    def active(self, environ: Mapping[str, str]) -> bool:
        return True

    def identify(self, directory: Path, environ: Mapping[str, str]) -> BuildIdentity:
        build_name = normalize_build_name(directory.resolve().name)
        git_dir = directory / ".git"
        if not git_dir.exists():
            return BuildIdentity(commit="", branch="", build_name=build_name)

        try:
            commit = _git_dir_output(git_dir, ["rev-parse", "--verify", "HEAD"])
        except ExecError as exc:
            log.debug("Unable to fetch head: %s", exc.detail)
            return BuildIdentity(commit="", branch="", build_name=build_name)

        try:
            branch = _git_dir_output(git_dir, ["symbolic-ref", "--short", "HEAD"])
        except ExecError:
            # detached HEAD
            branch = ""
        return BuildIdentity(commit=commit, branch=branch, build_name=build_name)


@dataclass(frozen=True)
class EnvironmentCI:
    """A CI service exposing build metadata through environment variables."""

    name: str
    markers: tuple[str, ...]
    commit_var: str
    branch_vars: tuple[str, ...]
    build_name_var: str

    def active(self, environ: Mapping[str, str]) -> bool:
        return any(environ.get(marker) for marker in self.markers)

    def identify(self, directory: Path, environ: Mapping[str, str]) -> BuildIdentity:
        local = LocalGit().identify(directory, environ)
        commit = environ.get(self.commit_var, "")
        branch = next((environ[var] for var in self.branch_vars if environ.get(var)), "")
        raw_name = environ.get(self.build_name_var, "").rsplit("/", 1)[-1]
        return BuildIdentity(
            commit=commit or local.commit,
            branch=branch or local.branch,
            build_name=normalize_build_name(raw_name) if raw_name else local.build_name,
        )


PROVIDERS: tuple[CIProvider, ...] = (
    EnvironmentCI(
        name="gitlab",
        markers=("GITLAB_CI", "CI_COMMIT_SHA"),
        commit_var="CI_COMMIT_SHA",
        branch_vars=("CI_COMMIT_REF_NAME",),
        build_name_var="CI_PROJECT_NAME",
    ),
    EnvironmentCI(
        name="github",
        markers=("GITHUB_ACTIONS",),
        commit_var="GITHUB_SHA",
        branch_vars=("GITHUB_HEAD_REF", "GITHUB_REF_NAME"),
        build_name_var="GITHUB_REPOSITORY",
    ),
    EnvironmentCI(
        name="buildkite",
        markers=("BUILDKITE",),
        commit_var="BUILDKITE_COMMIT",
        branch_vars=("BUILDKITE_BRANCH",),
        build_name_var="BUILDKITE_PIPELINE_SLUG",
    ),
    EnvironmentCI(
        name="azure",
        markers=("TF_BUILD",),
        commit_var="BUILD_SOURCEVERSION",
        branch_vars=("BUILD_SOURCEBRANCHNAME",),
        build_name_var="BUILD_REPOSITORY_NAME",
    ),
    LocalGit(),
)

# Environment variables read by any provider; tests clear these.
PROVIDER_VARIABLES: tuple[str, ...] = tuple(
    sorted(
        {
            var
            for provider in PROVIDERS
            if isinstance(provider, EnvironmentCI)
            for var in (
                *provider.markers,
                provider.commit_var,
                *provider.branch_vars,
                provider.build_name_var,
            )
        }
    )
)


def detect(environ: Mapping[str, str] | None = None) -> CIProvider:
    """Return the first active provider."""
    env = os.environ if environ is None else environ
    for provider in PROVIDERS:
        if provider.active(env):
            log.debug("detected CI provider %s", provider.name)
            return provider
    return LocalGit()


def identify(directory: Path, environ: Mapping[str, str] | None = None) -> BuildIdentity:
    env = os.environ if environ is None else environ
    return detect(env).identify(directory, env)


def _git_dir_output(git_dir: Path, args: list[str]) -> str:
    result = run_git(["--git-dir", str(git_dir), *args], repo_root=git_dir.parent)
    return result.stdout.strip()
