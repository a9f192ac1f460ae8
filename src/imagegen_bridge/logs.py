from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# stdout carries the stdio RPC stream, so everything human-readable goes to stderr.
stderr_console = Console(stderr=True)


def configure_logging(level: str | int | None = None) -> None:
    """Route package logging through rich on stderr."""
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=stderr_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
