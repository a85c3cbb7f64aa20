"""Logging setup shared by every entry point (Rich console handler)."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "asyncio")


def configure_logging(*, verbose: bool = False, console: Console | None = None) -> None:
    """Route stdlib logging through Rich.

    Safe to call more than once: existing root handlers are replaced.
    """

    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
