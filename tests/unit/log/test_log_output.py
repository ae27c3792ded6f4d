"""Tests for the rich log handler output."""
from __future__ import annotations

from pathlib import Path

import pytest

from buildtools.files import find_files_for_target
from buildtools.log import configure_logging


def test_long_error_stays_on_one_line(capsys: pytest.CaptureFixture[str]):
    message = "invalid configuration in .buildtools.yaml: " + "; ".join(f"field{i}: bad" for i in range(30))

    configure_logging().error("%s", message)

    lines = capsys.readouterr().err.splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("ERROR")
    assert lines[0].endswith(message)


def test_markup_in_target_is_printed_literally(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    (tmp_path / "a.yaml").write_text("a", encoding="utf-8")
    configure_logging(verbose=True)

    assert [p.name for p in find_files_for_target(tmp_path, "[/x]")] == ["a.yaml"]

    err = capsys.readouterr().err
    assert "using file 'a.yaml' for target: [/x]" in err
    assert "Logging error" not in err
