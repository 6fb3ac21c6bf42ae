"""
In-memory, URL-keyed cache of decoded images with coalesced asynchronous fetches.
"""

from __future__ import annotations

from fetchcache.config import LoadStatus
from fetchcache.config.settings import Settings
from fetchcache.core import FetchCache, Fetcher, ImageTarget, create_fetch_cache, decode_image
from fetchcache.exceptions import DecodeFailure, FetchCacheError, FetchFailure, InvalidKey
from fetchcache.models import LoadResult
from fetchcache.utils import setup_logging
from fetchcache.version import __version__


__all__ = [
    "__version__",
    "FetchCache",
    "Fetcher",
    "ImageTarget",
    "create_fetch_cache",
    "decode_image",
    "LoadResult",
    "LoadStatus",
    "Settings",
    "setup_logging",
    "FetchCacheError",
    "InvalidKey",
    "FetchFailure",
    "DecodeFailure",
]
