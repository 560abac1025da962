"""Logging setup for the CLI: stdlib logging rendered through rich on stderr."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> None:
    """Install a RichHandler on the root logger (idempotent)."""
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level)
            return
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    # LiteLLM logs every request at INFO.
    logging.getLogger("LiteLLM").setLevel(max(level, logging.WARNING))
