"""Logging utilities for moose.

Command messages ("Moose: Updated 3 image alt texts") and per-image download
progress go to stdout; warnings and errors go to stderr with a level prefix,
so piping ``moose table from-excel`` output stays clean. ``--verbose`` on the
CLI turns on debug messages and httpx request logging.
"""

import logging
import sys
from typing import TextIO

# Module-level logger
_logger: logging.Logger | None = None

LOGGER_NAME = "moose"


class LevelFormatter(logging.Formatter):
    """Bare message below WARNING, ``Warning: ...``/``Error: ...`` at or above it."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.capitalize()}: {message}"
        return message


def _stream_handler(stream: TextIO, level: int, below: int | None = None) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    if below is not None:
        handler.addFilter(lambda record: record.levelno < below)
    handler.setFormatter(LevelFormatter())
    return handler


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the moose logger.

    Safe to call more than once; each call replaces the previous handlers.

    Args:
        verbose: If True, show debug-level messages. Otherwise, show info and above.

    Returns:
        The configured logger instance.
    """
    global _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Bound to the current sys.stdout/sys.stderr; call again after swapping them
    logger.addHandler(_stream_handler(sys.stdout, logging.DEBUG, below=logging.WARNING))
    logger.addHandler(_stream_handler(sys.stderr, logging.WARNING))
    logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    global _logger
    if _logger is None:
        _logger = setup_logging(verbose=False)
    return _logger


def debug(msg: str) -> None:
    """Log a debug message (only shown with --verbose)."""
    get_logger().debug(msg)


def info(msg: str) -> None:
    get_logger().info(msg)


def warning(msg: str) -> None:
    get_logger().warning(msg)


def error(msg: str) -> None:
    get_logger().error(msg)


def progress(label: str, fraction: float) -> None:
    """Report one step of a multi-step operation as ``  img.png (50%)``.

    The fraction is clamped to 0..1 before rounding to a whole percent.
    """
    percent = max(0, min(100, round(fraction * 100)))
    get_logger().info(f"  {label} ({percent}%)")
