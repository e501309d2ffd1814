"""
utils/image_utils.py

Purpose: Image geometry and Pillow helpers

- Preview box fitting (fill + center crop) used for server previews
- Scaled size rules used by the uploader before sending
- Encoding back to the source format with quality and EXIF
"""

import io
import math
from typing import Any, Dict, Optional, Tuple

from PIL import Image, ImageOps

# Formats written back as-is; anything else is re-encoded as JPEG
SAVE_FORMATS = {"JPEG", "PNG", "GIF", "BMP", "WEBP"}


def compute_scaled_size(width: int, height: int, resize: Dict[str, Any]) -> Tuple[int, int]:
    """
    Target size for a client side resize.

    - only `height` set: scale to that height, width capped by `max_width`
    - only `width` set: scale to that width, height capped by `max_height`
    - both set: exact size

    Args:
        width: Source width
        height: Source height
        resize: Preview options (width, height, max_width, max_height)

    Returns:
        (scaled_width, scaled_height)
    """
    target_width = resize.get("width")
    target_height = resize.get("height")

    if target_height and not target_width:
        scaled_height = int(target_height)
        proportional_width = math.floor(width * scaled_height / height)
        max_width = resize.get("max_width")
        scaled_width = proportional_width if not max_width or max_width > proportional_width else int(max_width)

    elif target_width and not target_height:
        scaled_width = int(target_width)
        proportional_height = math.floor(height * scaled_width / width)
        max_height = resize.get("max_height")
        scaled_height = proportional_height if not max_height or max_height > proportional_height else int(max_height)

    else:
        scaled_width = int(target_width)
        scaled_height = int(target_height)

    return scaled_width, scaled_height


def client_resize(image: Image.Image, resize: Dict[str, Any]) -> Image.Image:
    """
    Scales an image the way the uploader does: crop the source horizontally
    to the target aspect ratio (centered), then resample to the scaled size.
    """
    scaled_width, scaled_height = compute_scaled_size(image.width, image.height, resize)

    crop_width = min(image.height * scaled_width / scaled_height, image.width)
    left = (image.width - crop_width) / 2
    box = (int(round(left)), 0, int(round(left + crop_width)), image.height)

    source = image.crop(box) if box != (0, 0, image.width, image.height) else image
    return source.resize((scaled_width, scaled_height), Image.Resampling.LANCZOS)


def resize_to_height(image: Image.Image, width: int, height: int) -> Image.Image:
    """
    Scales an image to `height` keeping the aspect ratio, then crops the
    extra width around the center so the result is at most `width x height`.
    Images already inside the box are returned untouched.
    """
    if image.width <= width and image.height <= height:
        return image

    scaled_width = max(1, round(image.width * height / image.height))
    if (scaled_width, height) != image.size:
        image = image.resize((scaled_width, height), Image.Resampling.LANCZOS)

    crop_width = min(width, image.width)
    left = (image.width - crop_width) // 2
    return image.crop((left, 0, left + crop_width, height))


def open_image(data: bytes) -> Image.Image:
    """
    Opens image bytes and applies the EXIF orientation.

    Raises:
        PIL.UnidentifiedImageError: If the data is not an image
    """
    image = Image.open(io.BytesIO(data))
    image.load()
    source_format = image.format
    transposed = ImageOps.exif_transpose(image)
    transposed.format = source_format
    return transposed


def output_format(source_format: Optional[str]) -> str:
    return source_format if source_format in SAVE_FORMATS else "JPEG"


def content_type_for(fmt: str) -> str:
    return Image.MIME.get(fmt, "application/octet-stream")


def encode_image(
    image: Image.Image,
    fmt: str,
    quality: Optional[int] = None,
    exif: Optional[bytes] = None,
) -> bytes:
    """
    Serializes an image.

    Args:
        image: Pillow image
        fmt: Pillow format name (JPEG, PNG, ...)
        quality: JPEG/WEBP quality
        exif: Raw EXIF block to keep (JPEG/WEBP/PNG)

    Returns:
        Encoded bytes
    """
    params: Dict[str, Any] = {}

    if fmt in ("JPEG", "WEBP"):
        if image.mode not in ("RGB", "L", "CMYK"):
            image = image.convert("RGB")
        if quality:
            params["quality"] = int(quality)
    if fmt == "BMP" and image.mode not in ("RGB", "L", "1", "P"):
        image = image.convert("RGB")
    if exif and fmt in ("JPEG", "WEBP", "PNG"):
        params["exif"] = exif

    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()
