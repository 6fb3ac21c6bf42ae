"""
Fetcher implementations.

The HTTP client retrieves raw bytes for the cache, which decodes them itself.
"""

from __future__ import annotations

from fetchcache.api.http_client import HTTPClient


__all__ = [
    "HTTPClient",
]
