"""
Image thumbnails for attachment previews (Pillow).
"""

import io
import logging
from typing import Mapping, Optional, Tuple

from django.conf import settings
from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 4000

# Filter name -> options. ``size`` is (width, height); ``mode`` is
# ``inset`` (fit inside, keep ratio) or ``outbound`` (crop to exact size).
DEFAULT_IMAGE_FILTERS = {
    'avatar_xsmall': {'size': (16, 16), 'mode': 'outbound'},
    'avatar_small': {'size': (32, 32), 'mode': 'outbound'},
    'avatar_med': {'size': (58, 58), 'mode': 'outbound'},
    'attachment_thumb': {'size': (110, 80), 'mode': 'inset'},
    'attachment_preview': {'size': (800, 600), 'mode': 'inset'},
}


class ImageProcessingError(Exception):
    """Raised when an attachment cannot be processed as an image"""
    pass


def get_image_filters() -> Mapping[str, dict]:
    return getattr(settings, 'ATTACHMENT_IMAGE_FILTERS', None) or DEFAULT_IMAGE_FILTERS


def get_image_filter(filter_name: str) -> Optional[dict]:
    return get_image_filters().get(filter_name)


def _validate_size(size: Tuple[int, int]) -> Tuple[int, int]:
    width, height = int(size[0]), int(size[1])
    if not (0 < width <= MAX_IMAGE_DIMENSION and 0 < height <= MAX_IMAGE_DIMENSION):
        raise ImageProcessingError(f"Unsupported image size {width}x{height}")
    return width, height


def make_thumbnail(content: bytes, size: Tuple[int, int], mode: str = 'outbound') -> Tuple[bytes, str]:
    """
    Scale an image.

    Args:
        content: Encoded image bytes
        size: Target (width, height)
        mode: 'outbound' crops to exactly size, 'inset' fits inside size

    Returns:
        (encoded image bytes, MIME type)

    Raises:
        ImageProcessingError: If the size is out of range or content is not an image
    """
    size = _validate_size(size)

    try:
        with Image.open(io.BytesIO(content)) as original:
            image_format = original.format or 'PNG'
            if mode == 'inset':
                image = original.copy()
                image.thumbnail(size)
            else:
                image = ImageOps.fit(original, size)

            if image_format == 'JPEG' and image.mode not in ('RGB', 'L'):
                image = image.convert('RGB')

            output = io.BytesIO()
            image.save(output, format=image_format)
    except (OSError, ValueError) as e:
        logger.warning("Failed to create thumbnail: %s", e)
        raise ImageProcessingError(f"Cannot process image: {e}") from e

    mime_type = Image.MIME.get(image_format, 'application/octet-stream')
    return output.getvalue(), mime_type
