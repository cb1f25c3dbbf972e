"""Shared rich console and logging setup."""

from __future__ import annotations

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

console = Console()
logger = logging.getLogger("hoptrace")

FORMAT = "%(message)s"


def configure_logging(level: Union[int, str] = "INFO") -> None:
    """Route ``hoptrace`` log records to the shared rich console."""
    logging.basicConfig(
        level=level,
        format=FORMAT,
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                markup=True,
                show_time=False,
            )
        ],
    )
    logger.setLevel(level)
