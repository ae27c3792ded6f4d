"""Load and validate the ``.buildtools.yaml`` configuration.

Configuration is read from ``BUILDTOOLS_CONTENT`` (base64 encoded YAML) when
set, otherwise from ``.buildtools.yaml`` in the build directory. A missing
file is an empty configuration; a present but invalid one is an error.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from jsonschema.validators import Draft202012Validator

from buildtools.errors import ConfigError, TargetNotFoundError

CONFIG_FILENAME = ".buildtools.yaml"
CONTENT_ENV = "BUILDTOOLS_CONTENT"
SCHEMA_FILENAME = "config.schema.json"


def _text(value: Any) -> str:
    """Scalar YAML value as the string the user wrote; null is empty."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _fields(section: Mapping[str, Any] | None) -> dict[str, str]:
    return {key: _text(value) for key, value in (section or {}).items()}


@dataclass(frozen=True)
class GitOpsEndpoint:
    """Where a target's descriptors are promoted to."""

    url: str = ""
    path: str = ""
    tag: str = ""


@dataclass(frozen=True)
class GitConfig:
    """Defaults for git author identity and SSH credentials."""

    name: str = ""
    email: str = ""
    user: str = ""
    key: str = ""
    password: str = ""


@dataclass(frozen=True)
class Config:
    """Parsed configuration; only the sections promotion needs are typed."""

    gitops: dict[str, GitOpsEndpoint] = field(default_factory=dict)
    git: GitConfig = field(default_factory=GitConfig)
    raw: dict[str, Any] = field(default_factory=dict)
    source: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str | None = None) -> Config:
        gitops = {
            str(name): GitOpsEndpoint(**_fields(entry))
            for name, entry in (data.get("gitops") or {}).items()
        }
        git = GitConfig(**_fields(data.get("git")))
        return cls(gitops=gitops, git=git, raw=data, source=source)

    def endpoint(self, target: str) -> GitOpsEndpoint:
        try:
            return self.gitops[target]
        except KeyError:
            raise TargetNotFoundError(f"no gitops matching {target} found") from None

    def dump(self) -> str:
        return yaml.safe_dump(self.raw, sort_keys=True, default_flow_style=False)


def load_schema() -> dict[str, Any]:
    text = files("buildtools.schemas").joinpath(SCHEMA_FILENAME).read_text(encoding="utf-8")
    return json.loads(text)


def validate_config(data: Any, source: str) -> None:
    """Raise ConfigError listing every schema violation in ``data``."""
    validator = Draft202012Validator(load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if not errors:
        return
    messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]
    raise ConfigError(f"invalid configuration in {source}: " + "; ".join(messages))


def load_config(directory: Path, environ: Mapping[str, str] | None = None) -> Config:
    """Load configuration for a build directory.

    Raises:
        ConfigError: content cannot be decoded, parsed or fails validation
    """
    env = os.environ if environ is None else environ
    content = env.get(CONTENT_ENV)
    if content:
        source = CONTENT_ENV
        try:
            text = base64.b64decode(content, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ConfigError(f"unable to decode {CONTENT_ENV}: {exc}") from exc
    else:
        path = directory / CONFIG_FILENAME
        if not path.exists():
            return Config()
        source = str(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"unable to read {path}: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"malformed YAML in {source}: {exc}") from exc

    if data is None:
        data = {}
    validate_config(data, source)
    return Config.from_dict(data, source=source)
