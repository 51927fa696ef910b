"""Pillow-based decode, thumbnail and JPEG recompression helpers.

Every function here is a pure function of its input bytes and parameters.
Decoded ``Image`` objects are never shared between calls, so the helpers are
safe to run concurrently on worker threads.
"""

from __future__ import annotations

import hashlib
from io import BytesIO
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from .exceptions import ImageDecodeError

LOGGER = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG"
MIN_COMPRESS_PIXELS = 64
COMPRESS_SCALE = 0.85
RETRY_QUALITY = 0.6
EARLY_MAX_DIMENSION = 2048
EARLY_QUALITY = 0.82


def content_hash(data: bytes) -> str:
    """Return the sha256 hex digest used as cache key for ``data``."""
    return hashlib.sha256(data).hexdigest()


def sniff_mime(data: bytes) -> str:
    """Best-effort MIME type: PNG by signature, JPEG for everything else."""
    if data[:4] == PNG_SIGNATURE:
        return "image/png"
    return "image/jpeg"


def jpeg_quality(quality: float) -> int:
    """Map a 0..1 quality to Pillow's 1..95 JPEG scale."""
    return max(1, min(95, round(quality * 100)))


def decode(data: bytes) -> Image.Image:
    """Decode ``data`` fully or raise ``ImageDecodeError``."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Unsupported or corrupt image data: {exc}") from exc
    return image


def _oriented(image: Image.Image) -> Image.Image:
    """Apply the EXIF orientation tag so width/height match what is displayed."""
    transposed = ImageOps.exif_transpose(image)
    return image if transposed is None else transposed


def _scaled_copy(image: Image.Image, max_side: int) -> Image.Image:
    scaled = image.copy()
    scaled.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
    return scaled


def thumbnail(data: bytes, max_pixel_size: int) -> Image.Image:
    """Return a proportionally scaled image whose longest side fits ``max_pixel_size``."""
    limit = max(1, int(max_pixel_size))
    return _scaled_copy(_oriented(decode(data)), limit)


def encode_jpeg(image: Image.Image, quality: float) -> bytes:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=jpeg_quality(quality))
    return buffer.getvalue()


def compress(data: bytes, max_bytes: int, quality: float) -> bytes:
    """Bring ``data`` under ``max_bytes`` on a best-effort basis.

    Input already within budget is returned unchanged. Otherwise the image is
    shrunk to ~85% of its longest side and re-encoded as JPEG; if that is still
    too large one more attempt is made at a lower quality. The smaller attempt
    is returned even when it remains over budget. Undecodable input is passed
    through untouched.
    """
    if len(data) <= max_bytes:
        return data
    try:
        image = _oriented(decode(data))
    except ImageDecodeError:
        LOGGER.info(
            "imaging.compress.passthrough",
            extra={"event": "imaging.compress.passthrough", "size": len(data)},
        )
        return data

    longest = max(image.size)
    target = max(MIN_COMPRESS_PIXELS, int(longest * COMPRESS_SCALE))
    scaled = _scaled_copy(image, target)
    try:
        first = encode_jpeg(scaled, quality)
        if len(first) <= max_bytes:
            return first
        retry = encode_jpeg(scaled, RETRY_QUALITY)
    except OSError as exc:
        LOGGER.warning(
            "imaging.compress.encode_failed",
            extra={"event": "imaging.compress.encode_failed", "error": str(exc)},
        )
        return data
    best = retry if len(retry) < len(first) else first
    if len(best) > max_bytes:
        LOGGER.info(
            "imaging.compress.over_budget",
            extra={
                "event": "imaging.compress.over_budget",
                "size": len(best),
                "max_bytes": max_bytes,
            },
        )
    return best


def early_downscale(
    data: bytes,
    max_dimension: int = EARLY_MAX_DIMENSION,
    quality: float = EARLY_QUALITY,
) -> bytes:
    """Cap the longest side at ``max_dimension`` and re-encode as JPEG.

    Applied when an image is attached, before it is queued for sending.
    Undecodable input passes through unchanged.
    """
    try:
        image = _oriented(decode(data))
        scaled = _scaled_copy(image, max(1, int(max_dimension)))
        return encode_jpeg(scaled, quality)
    except (ImageDecodeError, OSError) as exc:
        LOGGER.info(
            "imaging.downscale.passthrough",
            extra={"event": "imaging.downscale.passthrough", "error": str(exc)},
        )
        return data


class ImageCodec:
    """Groups the codec functions so callers can inject an instrumented codec."""

    def decode(self, data: bytes) -> Image.Image:
        return decode(data)

    def thumbnail(self, data: bytes, max_pixel_size: int) -> Image.Image:
        return thumbnail(data, max_pixel_size)

    def compress(self, data: bytes, max_bytes: int, quality: float) -> bytes:
        return compress(data, max_bytes, quality)

    def early_downscale(
        self,
        data: bytes,
        max_dimension: int = EARLY_MAX_DIMENSION,
        quality: float = EARLY_QUALITY,
    ) -> bytes:
        return early_downscale(data, max_dimension, quality)
