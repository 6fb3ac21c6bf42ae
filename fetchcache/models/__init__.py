from __future__ import annotations

from .result import CacheEntry, CacheStats, LoadResult, PendingRequest, ResultCallback


__all__ = [
    "CacheEntry",
    "CacheStats",
    "LoadResult",
    "PendingRequest",
    "ResultCallback",
]
