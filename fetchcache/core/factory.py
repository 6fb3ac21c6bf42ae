from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING

from fetchcache.api import HTTPClient
from fetchcache.config import LOGGER_NAME
from fetchcache.config.settings import Settings
from fetchcache.core.cache import FetchCache
from fetchcache.core.decoder import decode_image


if TYPE_CHECKING:
    from fetchcache.core.cache import Decoder, ErrorHook, Fetcher


logger = logging.getLogger(LOGGER_NAME)


def create_fetch_cache(
    settings: Settings | None = None,
    *,
    fetcher: Fetcher | None = None,
    decoder: Decoder = decode_image,
    on_error: ErrorHook | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> FetchCache:
    """
    Build the application's image cache.

    Meant to be called once by whatever owns the application's lifetime, with the
    result handed to every consumer. Without a fetcher, an `HTTPClient` configured
    from ``settings`` is used; a `max_entries` setting of 0 disables the LRU bound.
    Called from within a running loop, the cache is bound to that loop right away.
    """
    if settings is None:
        settings = Settings()
    if fetcher is None:
        fetcher = HTTPClient(settings)
    if loop is None:
        with suppress(RuntimeError):
            loop = asyncio.get_running_loop()
    max_entries: int | None = settings.max_entries if settings.max_entries > 0 else None
    cache = FetchCache(
        fetcher,
        max_entries=max_entries,
        decoder=decoder,
        on_error=on_error,
        loop=loop,
    )
    logger.info(f"Image cache ready: {cache!r}")
    return cache
