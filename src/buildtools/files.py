"""Resolve which files in a directory apply to a deployment target.

Files follow the override-by-suffix convention: ``name-<target><suffix>``
replaces ``name<suffix>`` for that target, names without a dash are shared by
every target, and dashed names belonging to other targets are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.markup import escape

from buildtools.errors import FilesystemError
from buildtools.log import MARKUP, get_logger

log = get_logger("files")


@dataclass(frozen=True)
class FileKind:
    """File suffix plus the label used in log lines."""

    label: str
    suffix: str


DESCRIPTOR = FileKind("file", ".yaml")
SCRIPT = FileKind("script", ".sh")


def files_for_target(directory: Path, target: str, kind: FileKind) -> list[Path]:
    """Return the files of ``kind`` in ``directory`` used for ``target``, sorted by name."""
    try:
        names = [entry.name for entry in directory.iterdir() if entry.is_file()]
    except OSError as exc:
        raise FilesystemError(f"unable to read {kind.label}s from {directory}: {exc}") from exc

    override_suffix = f"-{target}{kind.suffix}"
    candidates: set[str] = set()
    for name in names:
        if not name.endswith(kind.suffix):
            continue
        log.debug(
            "considering %s '[yellow]%s[/yellow]' for target: [green]%s[/green]",
            kind.label, escape(name), escape(target), extra=MARKUP,
        )
        if name.endswith(override_suffix) or "-" not in name:
            candidates.add(name)
        else:
            log.debug(
                "not using %s '[red]%s[/red]' for target: [green]%s[/green]",
                kind.label, escape(name), escape(target), extra=MARKUP,
            )

    selected: list[str] = []
    for name in candidates:
        if not name.endswith(override_suffix):
            override = f"{name[: -len(kind.suffix)]}{override_suffix}"
            if override in candidates:
                log.debug(
                    "not using %s '[red]%s[/red]' for target: [green]%s[/green]",
                    kind.label, escape(name), escape(target), extra=MARKUP,
                )
                continue
        log.debug(
            "using %s '[green]%s[/green]' for target: [green]%s[/green]",
            kind.label, escape(name), escape(target), extra=MARKUP,
        )
        selected.append(name)

    return [directory / name for name in sorted(selected)]


def find_files_for_target(directory: Path, target: str) -> list[Path]:
    """Deployment descriptors (``*.yaml``) for ``target``."""
    return files_for_target(directory, target, DESCRIPTOR)


def find_scripts_for_target(directory: Path, target: str) -> list[Path]:
    """Deploy hook scripts (``*.sh``) for ``target``."""
    return files_for_target(directory, target, SCRIPT)
