"""Tests for .buildtools.yaml loading and validation."""
from __future__ import annotations

import base64
from pathlib import Path

import pytest
import yaml

from buildtools.config import (
    CONFIG_FILENAME,
    CONTENT_ENV,
    Config,
    GitConfig,
    GitOpsEndpoint,
    load_config,
)
from buildtools.errors import ConfigError, TargetNotFoundError


def _write(directory: Path, text: str) -> None:
    (directory / CONFIG_FILENAME).write_text(text, encoding="utf-8")


class TestLoadConfig:
    def test_missing_file_is_empty_config(self, tmp_path: Path):
        config = load_config(tmp_path, {})

        assert config == Config()

    def test_empty_file_is_empty_config(self, tmp_path: Path):
        _write(tmp_path, "")

        config = load_config(tmp_path, {})

        assert config.gitops == {}
        assert config.git == GitConfig()

    def test_gitops_and_git_sections(self, tmp_path: Path):
        _write(
            tmp_path,
            """
git:
  name: Some User
  email: some.user@example.org
  key: ~/other/id_rsa
gitops:
  staging:
    url: git@github.com:example/gitops.git
    path: apps
  dummy: {}
  bare:
""",
        )

        config = load_config(tmp_path, {})

        assert config.endpoint("staging") == GitOpsEndpoint(url="git@github.com:example/gitops.git", path="apps")
        assert config.endpoint("dummy") == GitOpsEndpoint()
        assert config.endpoint("bare") == GitOpsEndpoint()
        assert config.git.name == "Some User"
        assert config.git.key == "~/other/id_rsa"
        assert config.source == str(tmp_path / CONFIG_FILENAME)

    def test_content_variable_takes_precedence(self, tmp_path: Path):
        _write(tmp_path, "gitops:\n  from-file: {}\n")
        encoded = base64.b64encode(b"gitops:\n  from-env: {}\n").decode("ascii")

        config = load_config(tmp_path, {CONTENT_ENV: encoded})

        assert list(config.gitops) == ["from-env"]
        assert config.source == CONTENT_ENV

    def test_undecodable_content_variable(self, tmp_path: Path):
        with pytest.raises(ConfigError, match=CONTENT_ENV):
            load_config(tmp_path, {CONTENT_ENV: "not base64!"})


class TestValidation:
    def test_wrong_section_type(self, tmp_path: Path):
        _write(tmp_path, "ci: []\n")

        with pytest.raises(ConfigError, match="ci: \\[\\] is not of type 'object'"):
            load_config(tmp_path, {})

    def test_unknown_gitops_field(self, tmp_path: Path):
        _write(tmp_path, "gitops:\n  dummy:\n    branch: main\n")

        with pytest.raises(ConfigError, match="gitops.dummy"):
            load_config(tmp_path, {})

    def test_non_mapping_document(self, tmp_path: Path):
        _write(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigError, match="is not of type 'object'"):
            load_config(tmp_path, {})

    def test_malformed_yaml(self, tmp_path: Path):
        _write(tmp_path, "gitops: [unclosed\n")

        with pytest.raises(ConfigError, match="malformed YAML"):
            load_config(tmp_path, {})

    def test_bare_sections_are_empty(self, tmp_path: Path):
        _write(tmp_path, "ci:\nregistry:\ntargets:\ngitops:\ngit:\n")

        config = load_config(tmp_path, {})

        assert config.gitops == {}
        assert config.git == GitConfig()

    def test_scalar_values_become_strings(self, tmp_path: Path):
        _write(tmp_path, "gitops:\n  dummy:\n    tag: 1.0\n    path: 2024\n    url:\ngit:\n  user: true\n")

        config = load_config(tmp_path, {})

        assert config.endpoint("dummy") == GitOpsEndpoint(url="", path="2024", tag="1.0")
        assert config.git.user == "true"

    def test_other_sections_are_kept_opaque(self, tmp_path: Path):
        _write(tmp_path, "registry:\n  dockerhub:\n    namespace: example\ntargets:\n  local:\n    context: kind\n")

        config = load_config(tmp_path, {})

        assert config.raw["registry"] == {"dockerhub": {"namespace": "example"}}


class TestConfig:
    def test_unknown_target(self):
        with pytest.raises(TargetNotFoundError, match="no gitops matching dummy found"):
            Config().endpoint("dummy")

    def test_dump_round_trips(self):
        data = {"gitops": {"dummy": {"url": "/tmp/repo"}}, "git": {"user": "deploy"}}

        dumped = Config.from_dict(data).dump()

        assert yaml.safe_load(dumped) == data
