"""Logging setup shared by the pipeline commands."""

from __future__ import annotations

import logging

from rich.console import Console, ConsoleRenderable
from rich.logging import RichHandler
from rich.text import Text

LOGGER_NAME = "buildtools"

# Pass as ``extra=`` for messages carrying rich colour tags.
MARKUP = {"markup": True}

console = Console(stderr=True, soft_wrap=True)


class LineHandler(RichHandler):
    """Rich handler emitting every record as a single unwrapped line."""

    def render(self, *, record, traceback, message_renderable) -> ConsoleRenderable:
        return Text.assemble(self.get_level_text(record), " ", message_renderable)


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Route the package logger through a single rich handler.

    Repeated calls replace the handler rather than stacking a new one, so
    in-process invocations (tests, wrappers) log each line once.
    """
    logger = get_logger()
    for handler in list(logger.handlers):
        if getattr(handler, "_buildtools", False):
            logger.removeHandler(handler)

    handler = LineHandler(
        console=console,
        markup=False,
        rich_tracebacks=False,
    )
    handler._buildtools = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
