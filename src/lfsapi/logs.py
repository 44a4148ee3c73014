"""Logging setup for the lfsapi package.

The package logger carries a NullHandler, so nothing is printed unless the
application configures logging or verbose output is switched on.
"""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "lfsapi"
LOG_FORMAT = "LFSAPI %(levelname)s: %(message)s"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())

_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Module logger below the package logger."""
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Print the package's debug logs to stderr, or go back to warnings only.

    Only changes what is logged, never how requests behave.
    """
    global _handler

    logger = logging.getLogger(LOGGER_NAME)
    if enabled:
        if _handler is None:
            _handler = logging.StreamHandler(sys.stderr)
            _handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(_handler)
        logger.setLevel(logging.DEBUG)
    else:
        if _handler is not None:
            logger.removeHandler(_handler)
            _handler = None
        logger.setLevel(logging.WARNING)
