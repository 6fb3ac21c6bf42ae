"""Exception hierarchy for the fetch cache.

None of these are raised out of ``FetchCache.request``; they travel inside
``LoadResult.error`` and through the optional error hook instead.
"""

from __future__ import annotations


class FetchCacheError(Exception):
    """
    Base exception class for the fetch cache.
    """


class InvalidKey(FetchCacheError):
    """
    The requested key is empty or can't be parsed into a fetchable URL.
    """

    def __init__(self, key: object, reason: str):
        super().__init__(f"Invalid key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class FetchFailure(FetchCacheError):
    """
    Raised by fetchers when the bytes for a URL could not be retrieved.
    """

    def __init__(self, url: str, reason: str, *, status: int | None = None):
        message = f"Fetching {url} failed: {reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.status = status


class DecodeFailure(FetchCacheError):
    """
    The bytes were retrieved, but aren't an image in any supported format.
    """

    def __init__(self, reason: str, *, url: str | None = None):
        super().__init__(f"Decoding failed: {reason}" if url is None else f"Decoding {url} failed: {reason}")
        self.url = url
        self.reason = reason
