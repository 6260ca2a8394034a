"""Logging configuration for the rwboot CLI."""

from __future__ import annotations

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "rwboot"


def setup_logging(
    verbosity: Literal["quiet", "normal", "verbose"] = "normal",
    *,
    no_color: bool = False,
) -> logging.Logger:
    """Configure the rwboot logger for the given verbosity."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    level_map = {
        "quiet": logging.ERROR,
        "normal": logging.INFO,
        "verbose": logging.DEBUG,
    }
    logger.setLevel(level_map[verbosity])
    logger.propagate = False

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_time=verbosity == "verbose",
        show_path=verbosity == "verbose",
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    return logger

