"""Cache key normalization."""

from __future__ import annotations

from yarl import URL

from fetchcache.config import ALLOWED_SCHEMES
from fetchcache.exceptions import InvalidKey


def normalize_key(key: object) -> str:
    """
    Turn a raw URL into the canonical string the cache is keyed by.

    Args:
        key: The URL as given by the caller, a string or `yarl.URL`

    Returns:
        The URL's canonical form without its fragment

    Raises:
        InvalidKey: If the key is empty, not a string, unparsable,
            not http(s) or missing a host
    """
    if isinstance(key, URL):
        url = key
    elif isinstance(key, str):
        text = key.strip()
        if not text:
            raise InvalidKey(key, "empty key")
        try:
            url = URL(text)
        except (TypeError, ValueError) as exc:
            raise InvalidKey(key, f"unparsable URL ({exc})") from exc
    else:
        raise InvalidKey(key, f"expected a URL string, got {type(key).__name__}")

    if url.scheme not in ALLOWED_SCHEMES:
        raise InvalidKey(key, f"unsupported scheme {url.scheme!r}")
    if not url.host:
        raise InvalidKey(key, "missing host")
    return str(url.with_fragment(None))


def is_valid_key(key: object) -> bool:
    try:
        normalize_key(key)
    except InvalidKey:
        return False
    return True
