"""
app/services/image_service.py

Purpose: Server side image previews

- Builds the original (first media size) from an uploaded image
- Generates every other preview from the stored original
- Stores previews as <orig_id>_<size> with the original's content type
- Cleans up the original and previews when any step fails
"""

from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi.concurrency import run_in_threadpool
from PIL import Image

from app.services import file_service
from app.services.uploads_config import get_media_sizes
from app.core.logging import get_logger
from utils.image_utils import (
    content_type_for,
    encode_image,
    resize_to_height,
    open_image,
    output_format,
)

logger = get_logger(__name__)


def resize_image(image: Image.Image, size: Dict[str, Any]) -> Tuple[Image.Image, str]:
    """
    Resizes an image to the media size height and crops it to the size width,
    if it is bigger than that size.

    Args:
        image: Source image (format attribute is used for the content type)
        size: {"width", "height", "quality"}

    Returns:
        (image, content_type)
    """
    fmt = output_format(image.format)
    resized = resize_to_height(image, size["width"], size["height"])
    return resized, content_type_for(fmt)


def _render(data: bytes, size: Dict[str, Any]) -> Tuple[bytes, str]:
    image = open_image(data)
    fmt = output_format(image.format)
    exif = image.info.get("exif")
    resized, content_type = resize_image(image, size)
    return encode_image(resized, fmt, quality=size.get("quality"), exif=exif), content_type


async def create_image(data: bytes, sizes: Optional[List[Dict[str, Any]]] = None) -> ObjectId:
    """
    Creates the original image with previews.

    Steps run one after another:
    1. render the original (first size) and store it
    2. render each remaining size from the stored original and store it

    Args:
        data: Uploaded image bytes
        sizes: Media sizes, `orig` first (defaults to settings)

    Returns:
        File id of the original

    Raises:
        PIL.UnidentifiedImageError: If the data is not an image
    """
    sizes = sizes or get_media_sizes()
    store = file_service.get_file_store()

    orig_data, content_type = await run_in_threadpool(_render, data, sizes[0])
    orig_id = await store.put(orig_data, content_type=content_type)

    try:
        for size in sizes[1:]:
            preview_data, _ = await run_in_threadpool(_render, orig_data, size)
            await store.put(
                preview_data,
                filename=file_service.preview_name(orig_id, size["size"]),
                content_type=content_type,
            )
    except Exception:
        logger.error(f"Preview generation failed for {orig_id}, cleaning up", exc_info=True)
        await store.remove(orig_id, with_previews=True)
        raise

    logger.info(f"Image {orig_id} stored with {len(sizes) - 1} previews")
    return orig_id
