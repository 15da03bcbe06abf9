"""Logging setup for the command line and service entry points."""
from __future__ import annotations

import logging
import os
import typing as t

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: t.Optional[str] = None, console: t.Optional[Console] = None) -> None:
    """
    Route all logging through a rich handler.

    ``level`` defaults to the LOG_LEVEL environment variable, then INFO.
    Library modules only ever call ``logging.getLogger(__name__)``.
    """
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # keep HTTP client chatter out of INFO output
    for noisy in ("httpx", "urllib3", "openai"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLogger().level))
