"""
Contact photo preparation.

Photos travel inside GraphQL mutations as data URLs, so images are:
- validated and converted to JPEG
- shrunk to a bounded size
- base64 encoded as ``data:image/jpeg;base64,...``
"""

import base64
import io
import logging

from PIL import Image

# Photo processing configuration
MAX_PHOTO_SIZE = 1024 * 1024  # 1MB before base64 encoding
MAX_PHOTO_DIMENSION = 512  # pixels
JPEG_QUALITY = 85
MIN_JPEG_QUALITY = 20

DATA_URL_PREFIX = "data:image/jpeg;base64,"

logger = logging.getLogger(__name__)


class PhotoError(Exception):
    """Raised when a photo cannot be processed."""

    pass


def process_photo(
    photo_data: bytes,
    max_size: int = MAX_PHOTO_SIZE,
    max_dimension: int = MAX_PHOTO_DIMENSION,
) -> bytes:
    """
    Validate an image and re-encode it as a bounded JPEG.

    Args:
        photo_data: Raw image bytes in any format Pillow can read
        max_size: Maximum output size in bytes
        max_dimension: Maximum width/height in pixels

    Returns:
        JPEG bytes

    Raises:
        PhotoError: If the data is not an image or cannot be shrunk enough
    """
    if not photo_data:
        raise PhotoError("Photo data cannot be empty")

    try:
        image = Image.open(io.BytesIO(photo_data))
        image.load()
    except (Image.UnidentifiedImageError, OSError) as e:
        logger.error(f"Invalid image format: {e}")
        raise PhotoError("Invalid or unsupported image format") from e

    if image.mode not in ("RGB", "L"):
        if image.mode == "RGBA":
            # White background for transparency
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        else:
            image = image.convert("RGB")

    width, height = image.size
    if width > max_dimension or height > max_dimension:
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        logger.debug(f"Resized photo from {width}x{height} to {image.size}")

    quality = JPEG_QUALITY
    output_data = _save_jpeg(image, quality)
    while len(output_data) > max_size and quality > MIN_JPEG_QUALITY:
        quality -= 5
        output_data = _save_jpeg(image, quality)

    if len(output_data) > max_size:
        raise PhotoError(
            f"Unable to reduce photo size below {max_size} bytes "
            f"(current: {len(output_data)} bytes)"
        )

    logger.debug(f"Processed photo: {len(photo_data)} -> {len(output_data)} bytes")
    return output_data


def _save_jpeg(image: Image.Image, quality: int) -> bytes:
    output = io.BytesIO()
    image.save(output, format="JPEG", quality=quality, optimize=True)
    return output.getvalue()


def encode_photo(photo_data: bytes) -> str:
    """Process an image and return it as a JPEG data URL."""
    processed = process_photo(photo_data)
    return DATA_URL_PREFIX + base64.b64encode(processed).decode("ascii")


def decode_photo(data_url: str) -> bytes:
    """
    Decode a data URL produced by encode_photo.

    Raises:
        PhotoError: If the text is not a base64 data URL
    """
    if not data_url.startswith("data:") or ";base64," not in data_url:
        raise PhotoError("Photo is not a base64 data URL")
    try:
        return base64.b64decode(data_url.split(";base64,", 1)[1], validate=True)
    except ValueError as e:
        raise PhotoError(f"Invalid base64 photo data: {e}") from e
