"""Core constants, enums, and type definitions for the fetch cache."""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum, auto
from typing import Any


# Logging special levels
CALL: int = logging.INFO - 1
logging.addLevelName(CALL, "CALL")

# Logging configuration
LOGGER_NAME = "FetchCache"
LOGGING_LEVELS = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: CALL,
    4: logging.DEBUG,
}
FILE_FORMATTER = logging.Formatter(
    "{asctime}.{msecs:03.0f}:\t{levelname:>7}:\t{filename}:{lineno}:\t{message}",
    style="{",
    datefmt="%Y-%m-%d %H:%M:%S",
)
OUTPUT_FORMATTER = logging.Formatter("{levelname}: {message}", style="{", datefmt="%H:%M:%S")

# Type aliases
JsonType = dict[str, Any]

# Cache policy
DEFAULT_MAX_ENTRIES = 256
ALLOWED_SCHEMES = frozenset({"http", "https"})

# Transport
REQUEST_TIMEOUT = timedelta(seconds=15)
RESOURCE_TIMEOUT = timedelta(seconds=30)
CONNECTION_LIMIT = 50
MAX_IMAGE_BYTES = 20 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024
DEFAULT_USER_AGENT = "fetchcache"


class LoadStatus(Enum):
    """Outcome of a single cache request, as seen by its callback."""

    CACHED = auto()
    LOADED = auto()
    INVALID_KEY = auto()
    FETCH_FAILED = auto()
    DECODE_FAILED = auto()
