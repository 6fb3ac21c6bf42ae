"""
The URL-keyed image cache and its building blocks.
"""

from __future__ import annotations

from fetchcache.core.cache import FetchCache, Fetcher, ImageTarget
from fetchcache.core.decoder import decode_image
from fetchcache.core.factory import create_fetch_cache
from fetchcache.core.keys import is_valid_key, normalize_key


__all__ = [
    "FetchCache",
    "Fetcher",
    "ImageTarget",
    "create_fetch_cache",
    "decode_image",
    "normalize_key",
    "is_valid_key",
]
