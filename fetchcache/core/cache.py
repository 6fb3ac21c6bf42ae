from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict, abc
from functools import partial
from typing import TYPE_CHECKING, Any, Protocol

from PIL import Image

from fetchcache.config import CALL, DEFAULT_MAX_ENTRIES, LOGGER_NAME, LoadStatus
from fetchcache.core.decoder import decode_image
from fetchcache.core.keys import normalize_key
from fetchcache.exceptions import DecodeFailure, FetchCacheError, FetchFailure, InvalidKey
from fetchcache.models import CacheEntry, CacheStats, LoadResult, PendingRequest
from fetchcache.utils import AwaitableValue, format_traceback, task_wrapper


if TYPE_CHECKING:
    from fetchcache.models import ResultCallback


logger = logging.getLogger(LOGGER_NAME)

Decoder = abc.Callable[[bytes], Image.Image]
ErrorHook = abc.Callable[[str, FetchCacheError], Any]


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


class ImageTarget(Protocol):
    image: Any


class FetchCache:
    """
    In-memory cache of decoded images, keyed by URL.

    A miss starts a single fetch per key; every request for that key made before
    the fetch completes waits on it. Callbacks always run on the event loop the
    cache is bound to, synchronously when a hit is requested from that loop.
    Failures are never cached and never raised: the callback just gets no image.

    `request` may be called from any thread once the cache is bound to a loop,
    either explicitly or by the first request made from within a running loop.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        decoder: Decoder = decode_image,
        on_error: ErrorHook | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """
        Args:
            fetcher: Retrieves the raw bytes for a normalized key
            max_entries: LRU bound on stored images, None for no bound
            decoder: Turns fetched bytes into an image, raising DecodeFailure
            on_error: Called with the key and error of every failed request
            loop: The loop fetches and callbacks run on, defaults to the first running one
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries has to be at least 1, or None for no bound")
        self._fetcher: Fetcher = fetcher
        self._decoder: Decoder = decoder
        self._on_error: ErrorHook | None = on_error
        self._max_entries: int | None = max_entries
        self._loop: asyncio.AbstractEventLoop | None = loop
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._pending: dict[str, PendingRequest] = {}
        self.stats = CacheStats()

    def __repr__(self) -> str:
        bound = "unbounded" if self._max_entries is None else f"max={self._max_entries}"
        return f"{self.__class__.__name__}({len(self._entries)} cached, {len(self._pending)} pending, {bound})"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        try:
            normalized = normalize_key(key)
        except InvalidKey:
            return False
        with self._lock:
            return normalized in self._entries

    @property
    def max_entries(self) -> int | None:
        return self._max_entries

    @property
    def in_flight(self) -> int:
        """Number of keys with a fetch currently running."""
        return len(self._pending)

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "FetchCache isn't bound to an event loop: "
                    "pass one in, or make the first request from a running loop"
                ) from None
        return self._loop

    @staticmethod
    def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def request(self, key: object, callback: ResultCallback) -> None:
        """
        Ask for the image at ``key``, with ``callback`` receiving the `LoadResult`.

        Never raises for a bad key and never blocks: invalid keys resolve right away
        with no image, hits resolve without touching the network, misses fetch.
        """
        try:
            normalized = normalize_key(key)
        except InvalidKey as exc:
            raw = "" if key is None else str(key)
            logger.debug(f"Ignoring request: {exc}")
            self._report(raw, exc)
            self._dispatch(callback, LoadResult(raw, LoadStatus.INVALID_KEY, error=exc))
            return

        loop = self._bind_loop()
        entry: CacheEntry | None
        with self._lock:
            entry = self._entries.get(normalized)
            if entry is not None:
                self._entries.move_to_end(normalized)
                self.stats.hits += 1
            else:
                self.stats.misses += 1
                pending = self._pending.get(normalized)
                if pending is not None:
                    pending.waiters.append(callback)
                    self.stats.coalesced += 1
                    logger.log(
                        CALL, f"Joined pending fetch: {normalized} ({len(pending.waiters)} waiters)"
                    )
                    return
                pending = self._pending[normalized] = PendingRequest(normalized, [callback])
                self.stats.fetches += 1

        if entry is not None:
            logger.log(CALL, f"Cache hit: {normalized}")
            self._dispatch(callback, LoadResult(normalized, LoadStatus.CACHED, entry.image))
            return

        logger.log(CALL, f"Cache miss, fetching: {normalized}")
        if self._on_loop(loop):
            self._spawn(pending)
            return
        try:
            loop.call_soon_threadsafe(self._spawn, pending)
        except RuntimeError:
            # the bound loop is closed, nothing will ever run the fetch
            self._complete(
                pending,
                LoadResult(
                    normalized,
                    LoadStatus.FETCH_FAILED,
                    error=FetchFailure(normalized, "event loop closed"),
                ),
            )

    async def load(self, key: object) -> LoadResult:
        """Request ``key`` and wait for its result. Has to run on the cache's loop."""
        loop = self._bind_loop()
        if not self._on_loop(loop):
            raise RuntimeError("FetchCache.load has to be awaited on the loop the cache is bound to")
        value: AwaitableValue[LoadResult] = AwaitableValue()
        self.request(key, value.set)
        return await value.get()

    async def get(self, key: object) -> Image.Image | None:
        """Request ``key`` and wait for the image, or None if there's none."""
        return (await self.load(key)).image

    def load_into(self, key: object, target: ImageTarget, placeholder: Any = None) -> None:
        """
        Put ``placeholder`` on ``target`` right away, then swap in the image once it's loaded.

        On any failure the placeholder stays.
        """
        target.image = placeholder

        def apply(result: LoadResult) -> None:
            if result.image is not None:
                target.image = result.image

        self.request(key, apply)

    def peek(self, key: object) -> Image.Image | None:
        """Return the cached image without fetching or touching recency and stats."""
        try:
            normalized = normalize_key(key)
        except InvalidKey:
            return None
        with self._lock:
            entry = self._entries.get(normalized)
        return None if entry is None else entry.image

    def invalidate(self, key: object) -> bool:
        """Drop the cached image for ``key``. A running fetch for it is left alone."""
        try:
            normalized = normalize_key(key)
        except InvalidKey:
            return False
        with self._lock:
            return self._entries.pop(normalized, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def close(self) -> None:
        """Close the fetcher, if it can be closed."""
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            await close()

    def _spawn(self, pending: PendingRequest) -> None:
        assert self._loop is not None
        task = pending.task = self._loop.create_task(self._fetch(pending))
        task.add_done_callback(partial(self._fetch_done, pending))

    def _fetch_done(self, pending: PendingRequest, task: asyncio.Task[None]) -> None:
        # _fetch completes its own pending request unless it was cancelled or broke
        if self._pending.get(pending.key) is not pending:
            return
        if task.cancelled():
            reason = "cancelled"
        else:
            exc = task.exception()
            reason = "aborted" if exc is None else f"aborted by {type(exc).__name__}: {exc}"
        self._complete(
            pending,
            LoadResult(pending.key, LoadStatus.FETCH_FAILED, error=FetchFailure(pending.key, reason)),
        )

    @task_wrapper
    async def _fetch(self, pending: PendingRequest) -> None:
        key = pending.key
        image: Image.Image | None = None
        error: FetchCacheError | None = None
        try:
            data = await self._fetcher.fetch(key)
            loop = asyncio.get_running_loop()
            image = await loop.run_in_executor(None, self._decoder, data)
            if image is None:
                raise DecodeFailure("decoder returned no image")
            status = LoadStatus.LOADED
        except DecodeFailure as exc:
            status = LoadStatus.DECODE_FAILED
            error = DecodeFailure(exc.reason, url=key)
            error.__cause__ = exc
        except FetchFailure as exc:
            status = LoadStatus.FETCH_FAILED
            error = exc
        except Exception as exc:
            logger.error(f"Loading failed unexpectedly for {key}:\n{format_traceback(exc)}")
            status = LoadStatus.FETCH_FAILED
            error = FetchFailure(key, f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
        self._complete(pending, LoadResult(key, status, image, error))

    def _complete(self, pending: PendingRequest, result: LoadResult) -> None:
        key = pending.key
        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]
            if result.image is not None:
                self._store(key, result.image)
            else:
                self.stats.failures += 1
            # no waiter can join once the pending request is gone
            waiters = list(pending.waiters)

        if result.error is not None:
            logger.warning(str(result.error))
            self._report(key, result.error)
        else:
            logger.log(CALL, f"Loaded: {key} ({len(waiters)} waiters)")
        for callback in waiters:
            self._invoke(callback, result)

    def _store(self, key: str, image: Image.Image) -> None:
        # caller holds the lock
        self._entries[key] = CacheEntry(key, image)
        self._entries.move_to_end(key)
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.stats.evictions += 1
            logger.log(CALL, f"Evicted: {evicted}")

    def _dispatch(self, callback: ResultCallback, result: LoadResult) -> None:
        loop = self._loop
        if loop is None or self._on_loop(loop):
            self._invoke(callback, result)
        else:
            try:
                loop.call_soon_threadsafe(self._invoke, callback, result)
            except RuntimeError:
                # the loop is closed
                self._invoke(callback, result)

    def _invoke(self, callback: ResultCallback, result: LoadResult) -> None:
        try:
            callback(result)
        except Exception:
            logger.exception(f"Result callback raised for {result.key}")

    def _report(self, key: str, error: FetchCacheError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(key, error)
        except Exception:
            logger.exception(f"Error hook raised for {key}")
