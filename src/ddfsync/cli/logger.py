"""Logging setup shared by the ddfsync commands."""

from __future__ import annotations

import logging
import os
import sys
from typing import Final

import colorlog

LOG_FORMAT: Final[str] = (
    "%(log_color)s[%(asctime)s] <%(name)s> %(levelname)s:%(reset)s %(message)s"
)
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "bold_yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}

NOISY_LOGGERS: Final[tuple[str, ...]] = ("urllib3", "filelock")
"""Third-party loggers only shown with --verbose."""


def _color_enabled() -> bool:
    return os.getenv("NO_COLOR") is None and sys.stderr.isatty()


def configure_logging(verbose: bool) -> None:
    """
    Route log records to stderr, colored when stderr is a terminal.

    Setting NO_COLOR disables colors. Without verbose, we log at INFO
    and hide the chatter of the HTTP and locking libraries.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            fmt=LOG_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors=LOG_COLORS,
            no_color=not _color_enabled(),
        )
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[handler],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if verbose else logging.WARNING)


log = logging.getLogger("cli")
"""Logger that the CLI commands should use."""
