from __future__ import annotations

from collections import abc
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fetchcache.config import LoadStatus


if TYPE_CHECKING:
    import asyncio

    from PIL import Image

    from fetchcache.exceptions import FetchCacheError


@dataclass(frozen=True)
class LoadResult:
    """
    What every request callback receives.

    `image` is None for every failure; `status` tells the failures apart.
    `key` is the normalized key, or the raw input when it was invalid.
    """

    key: str
    status: LoadStatus
    image: Image.Image | None = None
    error: FetchCacheError | None = None

    @property
    def ok(self) -> bool:
        return self.image is not None


ResultCallback = abc.Callable[[LoadResult], Any]


@dataclass
class CacheEntry:
    key: str
    image: Image.Image


@dataclass
class PendingRequest:
    """An in-flight fetch and the callbacks waiting for its outcome, in registration order."""

    key: str
    waiters: list[ResultCallback] = field(default_factory=list)
    task: asyncio.Task[None] | None = None


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    fetches: int = 0
    coalesced: int = 0
    failures: int = 0
    evictions: int = 0
