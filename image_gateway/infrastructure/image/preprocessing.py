"""Image preprocessing for vendors with strict upload requirements.

The OpenAI edit endpoint only accepts RGBA PNG files up to 4 MiB.
"""

import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 4 * 1024 * 1024
FALLBACK_BOX = (1024, 1024)


def _encode_rgba_png(image: Image.Image) -> bytes:
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def prepare_png_with_alpha(data: bytes, max_bytes: int = MAX_UPLOAD_BYTES) -> bytes:
    """Return ``data`` as an RGBA PNG no larger than ``max_bytes``.

    If the alpha PNG is too big, the image is shrunk to fit inside 1024x1024
    (aspect ratio kept, never enlarged) and encoded again.

    Raises:
        ValueError: the input cannot be decoded, or is still too large after
            the downscale
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            source_format = source.format
            image = source.copy()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Input is not a decodable image: {e}") from e

    logger.debug(f"Preprocessing image: format={source_format}, mode={image.mode}, size={image.size}")

    encoded = _encode_rgba_png(image)
    if len(encoded) <= max_bytes:
        return encoded

    logger.info(f"Alpha PNG is {len(encoded)} bytes, resizing into {FALLBACK_BOX}")
    image.thumbnail(FALLBACK_BOX, Image.Resampling.LANCZOS)
    encoded = _encode_rgba_png(image)
    if len(encoded) > max_bytes:
        raise ValueError(
            f"Image is still {len(encoded)} bytes after resizing (limit {max_bytes})"
        )
    return encoded
