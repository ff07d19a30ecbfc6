"""Logging helpers for the gitstats engine and command line."""

from __future__ import annotations

import logging

_LOGGER_NAME = "gitstats"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the gitstats hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Send gitstats log records to stderr, at DEBUG when ``verbose``."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations don't duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[gitstats] %(levelname)s %(message)s"))
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "get_logger"]
