"""
HTTP client used as the default image fetcher.

Handles HTTP session management, transport timeouts and response size limits.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import TYPE_CHECKING, Any

import aiohttp
import truststore
from yarl import URL

from fetchcache.config import LOGGER_NAME, READ_CHUNK_SIZE
from fetchcache.exceptions import FetchFailure


if TYPE_CHECKING:
    from fetchcache.config.settings import Settings


logger = logging.getLogger(f"{LOGGER_NAME}.http")


class HTTPClient:
    """
    Retrieves raw image bytes over HTTP(S).

    This client provides:
    - A lazily created, pooled session with keep-alive connections
    - Per-read and whole-transfer timeouts taken from the settings
    - System trust store certificate verification
    - Proxy support
    - A hard limit on the response body size

    Every failure is reported as `FetchFailure`. Requests are never retried.
    """

    def __init__(self, settings: Settings):
        """
        Initialize the HTTP client.

        Parameters
        ----------
        settings : Settings
            Settings providing timeouts, connection limits, proxy and User-Agent
        """
        self.settings = settings
        self._session: aiohttp.ClientSession | None = None
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def get_session(self) -> aiohttp.ClientSession:
        """
        Get or create the HTTP session.

        Returns
        -------
        aiohttp.ClientSession
            The active HTTP session

        Raises
        ------
        RuntimeError
            If the client has been closed
        """
        if self._closed:
            raise RuntimeError("Session is closed")
        if (session := self._session) is not None:
            if session.closed:
                raise RuntimeError("Session is closed")
            return session

        # sock_read bounds the wait between received chunks, total the whole transfer
        timeout = aiohttp.ClientTimeout(
            sock_read=self.settings.request_timeout,
            total=self.settings.resource_timeout,
        )
        ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        connector = aiohttp.TCPConnector(limit=self.settings.connection_limit, ssl=ssl_context)
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers={"User-Agent": self.settings.user_agent},
        )
        logger.debug(
            f"Session created (timeouts: {timeout.sock_read}s/{timeout.total}s, "
            f"limit={self.settings.connection_limit})"
        )
        return self._session

    async def fetch(self, url: URL | str) -> bytes:
        """
        Retrieve the body of ``url``.

        Parameters
        ----------
        url : URL | str
            Absolute http(s) URL to retrieve

        Returns
        -------
        bytes
            The full response body

        Raises
        ------
        FetchFailure
            On closed client, connection problems, timeouts, non-2xx statuses,
            and empty or oversized bodies
        """
        url_str = str(url)
        try:
            session = await self.get_session()
        except RuntimeError as exc:
            raise FetchFailure(url_str, str(exc)) from exc

        kwargs: dict[str, Any] = {}
        if self.settings.proxy:
            kwargs["proxy"] = self.settings.proxy
        limit: int = self.settings.max_image_bytes

        logger.debug(f"Request: GET {url_str}")
        try:
            async with session.get(url, **kwargs) as response:
                logger.debug(f"Response: {response.status}: {url_str}")
                if not 200 <= response.status < 300:
                    raise FetchFailure(url_str, f"HTTP status {response.status}", status=response.status)
                if response.content_length is not None and response.content_length > limit:
                    raise FetchFailure(
                        url_str,
                        f"body of {response.content_length} bytes exceeds the {limit} bytes limit",
                        status=response.status,
                    )
                buffer = bytearray()
                async for chunk in response.content.iter_chunked(READ_CHUNK_SIZE):
                    buffer.extend(chunk)
                    if len(buffer) > limit:
                        raise FetchFailure(
                            url_str, f"body exceeds the {limit} bytes limit", status=response.status
                        )
        except aiohttp.ClientConnectorCertificateError as exc:
            raise FetchFailure(url_str, f"certificate verification failed: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise FetchFailure(url_str, str(exc) or type(exc).__name__) from exc
        except asyncio.TimeoutError as exc:
            raise FetchFailure(url_str, "timed out") from exc

        if not buffer:
            raise FetchFailure(url_str, "empty body", status=response.status)
        return bytes(buffer)

    async def close(self) -> None:
        """
        Close the HTTP session. Fetches made afterwards fail.
        """
        self._closed = True
        if self._session is not None:
            await self._session.close()
            self._session = None
