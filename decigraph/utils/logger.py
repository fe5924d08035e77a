"""Logging configuration using Loguru."""

import sys

from loguru import logger


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_LEVEL = "WARNING"


def setup_logging(level: str = DEFAULT_LEVEL, sink=None) -> None:
    """
    Configure a single console sink.

    Command output goes to stdout via print; log records go to stderr so
    they never mix with exported documents.
    """
    level = (level or DEFAULT_LEVEL).upper()
    if level not in LOG_LEVELS:
        level = DEFAULT_LEVEL

    logger.remove()
    logger.add(
        sink or sys.stderr,
        level=level,
        format="<level>{level: <8}</level> | <cyan>{extra[module]}</cyan> - <level>{message}</level>",
        colorize=sink is None,
    )
    logger.configure(extra={"module": "decigraph"})


def get_logger(name: str):
    """Get a logger instance for a module."""
    return logger.bind(module=name)
