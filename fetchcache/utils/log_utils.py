"""Logging setup for applications embedding the fetch cache."""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from fetchcache.config import FILE_FORMATTER, LOGGER_NAME, LOGGING_LEVELS


def setup_logging(verbose: int = 2, *, log_file: Path | None = None) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Args:
        verbose: Verbosity index into `LOGGING_LEVELS`, clamped to 0..4
        log_file: Optional path of a midnight-rotated log file

    Returns:
        The configured package logger

    Calling this again only adjusts the level and adds a file handler
    for a log file that isn't attached yet.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(LOGGING_LEVELS[max(0, min(verbose, 4))])
    if not any(isinstance(h, logging.StreamHandler) and h.stream is sys.stdout for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(FILE_FORMATTER)
        logger.addHandler(console_handler)
    if log_file is not None:
        log_file = Path(log_file)
        attached = {
            Path(h.baseFilename) for h in logger.handlers if isinstance(h, TimedRotatingFileHandler)
        }
        if log_file.absolute() not in attached:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(log_file, when="midnight", backupCount=5)
            file_handler.setFormatter(FILE_FORMATTER)
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")
    return logger
