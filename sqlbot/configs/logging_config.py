"""
Structured logging for SQLBot.

Log records go to stderr so that rich output on stdout stays clean
when results are piped.
"""
import os
import sys
import logging
from typing import Optional

LOGGER_NAME = "sqlbot"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``sqlbot`` logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    log_level = (level or os.getenv("LOG_LEVEL", "WARNING")).upper()
    logger.setLevel(getattr(logging, log_level, logging.WARNING))

    return logger
