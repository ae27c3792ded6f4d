"""Prepare descriptor files for promotion.

Descriptor content is opaque; the only change made is replacing the
``${COMMIT}`` and ``${NAMESPACE}`` placeholders.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from buildtools.errors import FilesystemError

COMMIT_PLACEHOLDER = b"${COMMIT}"
NAMESPACE_PLACEHOLDER = b"${NAMESPACE}"


@dataclass(frozen=True)
class DescriptorEntry:
    """A file to promote: bare file name plus its bytes."""

    name: str
    content: bytes


def render_content(content: bytes, tag: str, namespace: str | None = None) -> bytes:
    rendered = content.replace(COMMIT_PLACEHOLDER, tag.encode("utf-8"))
    if namespace:
        rendered = rendered.replace(NAMESPACE_PLACEHOLDER, namespace.encode("utf-8"))
    return rendered


def render_descriptors(
    paths: Iterable[Path],
    tag: str,
    namespace: str | None = None,
) -> list[DescriptorEntry]:
    entries: list[DescriptorEntry] = []
    for path in paths:
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise FilesystemError(f"unable to read descriptor {path}: {exc}") from exc
        entries.append(DescriptorEntry(name=path.name, content=render_content(content, tag, namespace)))
    return entries
