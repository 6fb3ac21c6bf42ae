"""Configuration package for the fetch cache."""

from __future__ import annotations

# Re-export all public symbols for convenience
from .constants import (
    ALLOWED_SCHEMES,
    CALL,
    CONNECTION_LIMIT,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_USER_AGENT,
    FILE_FORMATTER,
    LOGGER_NAME,
    LOGGING_LEVELS,
    MAX_IMAGE_BYTES,
    OUTPUT_FORMATTER,
    READ_CHUNK_SIZE,
    REQUEST_TIMEOUT,
    RESOURCE_TIMEOUT,
    JsonType,
    LoadStatus,
)


__all__ = [
    "CALL",
    "LOGGER_NAME",
    "LOGGING_LEVELS",
    "FILE_FORMATTER",
    "OUTPUT_FORMATTER",
    "JsonType",
    "LoadStatus",
    "DEFAULT_MAX_ENTRIES",
    "ALLOWED_SCHEMES",
    "REQUEST_TIMEOUT",
    "RESOURCE_TIMEOUT",
    "CONNECTION_LIMIT",
    "MAX_IMAGE_BYTES",
    "READ_CHUNK_SIZE",
    "DEFAULT_USER_AGENT",
]
