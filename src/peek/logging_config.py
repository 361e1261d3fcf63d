"""
Logging configuration for peek.

Log output goes to stderr because stdout may carry the sample data.
"""
import logging
import sys
from typing import TextIO


def setup_logger(
    name: str = "peek",
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure and return a logger with consistent formatting.

    Args:
        name: Logger name. Module loggers under it (peek.*) share its handler.
        level: Logging level (default: INFO)
        stream: Where to write (default: sys.stderr)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(message)s"))
    logger.addHandler(handler)

    logger.propagate = False

    return logger
