"""Logger configuration for the flowswitch package."""

import logging
import os
import sys

__all__ = ["setup_logger"]


def setup_logger(
    name: str = "flowswitch",
    level: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Args:
        name: Logger name (the package name by default)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    if os.environ.get("FLOW_DEBUG"):
        level = "DEBUG"
    level = level or os.getenv("FLOW_LOG_LEVEL", "WARNING")
    format_string = format_string or (
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(fmt=format_string, datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        logger.setLevel(logging.WARNING)
        logger.warning("unknown log level %r; using WARNING", level)
        return logger
    logger.setLevel(numeric)

    return logger
