"""Utility modules for the fetch cache."""

from __future__ import annotations

# Async helpers
from .async_helpers import AwaitableValue, format_traceback, task_wrapper

# JSON utilities
from .json_utils import SERIALIZE_ENV, json_load, json_save, merge_json

# Logging
from .log_utils import setup_logging


__all__ = [
    # JSON utilities
    "json_load",
    "json_save",
    "merge_json",
    "SERIALIZE_ENV",
    # Async helpers
    "format_traceback",
    "task_wrapper",
    "AwaitableValue",
    # Logging
    "setup_logging",
]
