"""Logging setup for the host CLI.

While a canvas is running it owns the terminal, so when a log file is
configured all records go there instead of stderr.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Handler:
    """Install a single handler on the ``termcanvas`` logger.

    Args:
        level: Log level name
        log_file: Write to this file instead of stderr

    Returns:
        The installed handler
    """
    logger = logging.getLogger("termcanvas")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return handler


__all__ = [
    "configure_logging",
]
