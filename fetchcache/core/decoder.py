"""Image decoding for fetched payloads."""

from __future__ import annotations

from io import BytesIO

from PIL import Image

from fetchcache.exceptions import DecodeFailure


def decode_image(data: bytes) -> Image.Image:
    """
    Decode raw bytes in any format Pillow understands.

    The pixel data is loaded right away, so truncated or corrupt payloads fail
    here rather than on first use.

    Raises:
        DecodeFailure: If the payload is empty or can't be decoded
    """
    if not data:
        raise DecodeFailure("empty payload")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except Image.DecompressionBombError as exc:
        raise DecodeFailure(f"image too large ({exc})") from exc
    # Pillow plugins signal broken data with any of these
    except (OSError, SyntaxError, ValueError) as exc:
        raise DecodeFailure(str(exc) or type(exc).__name__) from exc
    return image
