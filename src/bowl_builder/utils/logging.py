"""
Logging for the bowl_builder package.

Everything logs below the ``bowl_builder`` logger, so a single call to
:func:`setup_logging` from the CLI configures the cascade, the store and the
calculator at once.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "bowl_builder"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Also append records to this file, creating its directory

    Returns:
        The ``bowl_builder`` logger
    """
    level_num = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level_num)
    # Re-running setup replaces handlers instead of duplicating output
    logger.handlers.clear()

    _attach(logger, logging.StreamHandler(sys.stdout), level_num)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(log_file), level_num)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, placed under ``bowl_builder`` when it is not already."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
