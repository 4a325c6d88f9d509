"""Logging configuration for Kiln.

Modules log through ``logging.getLogger(__name__)``; only the CLI installs
a handler, on the package logger.
"""

import logging
import os
import sys

__all__ = ["setup_logger"]

DEFAULT_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logger(
    name: str = "kiln",
    level: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """Configure and return the package logger.

    Args:
        name: Logger name.
        level: Log level name; falls back to ``KILN_LOG_LEVEL``, then INFO.
        format_string: Custom format string.

    Returns:
        Configured logger instance.
    """
    level = level or os.getenv("KILN_LOG_LEVEL", "INFO")
    logger = logging.getLogger(name)

    # Only add a handler once, repeated CLI invocations just adjust the level
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt=format_string or DEFAULT_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
