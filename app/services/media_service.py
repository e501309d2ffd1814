"""
app/services/media_service.py

Purpose: User media (uploaded images and files)

- Upload checks against the uploads config (extension, max size)
- Images go through the preview pipeline, other files are stored as-is
- Media records, listing and removal (files with previews)
- Album counters follow every change
"""

from typing import Optional, Dict, Any, List, Tuple

from bson import ObjectId
from PIL import UnidentifiedImageError
from pymongo import DESCENDING

from app.db import mongo
from app.core.exceptions import ClientError, PermissionDeniedError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.services import album_service, file_service, image_service
from app.services.uploads_config import get_uploads_config, get_mime_type
from utils import constants
from utils.time_utils import utcnow
from utils.validation_utils import get_extension, parse_object_id, sanitize_text

logger = get_logger(__name__)

MEDIA_TYPE_IMAGE = "image"
MEDIA_TYPE_BINARY = "binary"


def check_upload(file_name: str, size: int, config: Optional[Dict[str, Any]] = None) -> Tuple[str, int]:
    """
    Checks a file against the uploads config.

    Args:
        file_name: Original file name
        size: Size in bytes
        config: Parsed uploads config (defaults to settings)

    Returns:
        (extension, max_size)

    Raises:
        ClientError: Extension not allowed, or file too big
    """
    config = config or get_uploads_config()
    ext = get_extension(file_name)

    if ext not in config["types"]:
        raise ClientError(constants.ERR_INVALID_EXT.format(file_name=file_name), fields=["file"])

    max_size = config["types"][ext].get("max_size") or config.get("max_size")
    if max_size and size > max_size:
        raise ClientError(
            constants.ERR_MAX_SIZE.format(file_name=file_name, max_size_kb=round(max_size / 1024)),
            fields=["file"],
        )

    return ext, max_size


async def create_media(
    user: Dict[str, Any],
    album_id: Optional[str],
    file_name: str,
    data: bytes,
    description: str = "",
) -> Dict[str, Any]:
    """
    Stores an upload and creates its media record.

    Args:
        user: Uploader
        album_id: Target album (the default album when empty)
        file_name: Original file name
        data: File content
        description: Optional description

    Returns:
        Media document

    Raises:
        ClientError: Rejected file (extension, size, broken image)
        PermissionDeniedError: Album of another user
    """
    ext, _ = check_upload(file_name, len(data))

    if album_id:
        album = await album_service.fetch_own_album(album_id, user)
    else:
        album = await album_service.get_default_album(user)

    content_type = get_mime_type(ext)

    with LogContext(user_id=user["_id"]):
        if content_type.startswith("image/"):
            try:
                file_id = await image_service.create_image(data)
            except UnidentifiedImageError:
                raise ClientError(constants.ERR_BAD_IMAGE.format(file_name=file_name), fields=["file"])
            media_type = MEDIA_TYPE_IMAGE
        else:
            file_id = await file_service.get_file_store().put(
                data, content_type=content_type, metadata={"file_name": file_name}
            )
            media_type = MEDIA_TYPE_BINARY

        media = {
            "file_id": file_id,
            "user_id": user["_id"],
            "album_id": album["_id"],
            "type": media_type,
            "file_name": file_name,
            "file_size": len(data),
            "description": sanitize_text(description),
            "created_at": utcnow(),
            "exists": True,
        }
        result = await mongo.get_medias_collection().insert_one(media)
        media["_id"] = result.inserted_id

        await album_service.update_counters(album["_id"])

        logger.info(f"📎 Media {media['_id']} uploaded: {file_name} ({len(data)} bytes)")

    return media


async def get_media(media_id: Any) -> Dict[str, Any]:
    """
    Raises:
        ResourceNotFoundError: Unknown or removed media
    """
    oid = parse_object_id(media_id)
    media = await mongo.get_medias_collection().find_one({"_id": oid, "exists": True}) if oid else None
    if not media:
        raise ResourceNotFoundError("Media not found")
    return media


async def list_medias(
    user_id: ObjectId,
    album_id: Optional[ObjectId] = None,
    limit: int = 100,
    before: Optional[ObjectId] = None,
) -> List[Dict[str, Any]]:
    """
    Visible medias of a user, newest first.

    Args:
        user_id: Owner
        album_id: Only this album
        limit: Page size
        before: Only medias older than this id (pagination)
    """
    query: Dict[str, Any] = {"user_id": user_id, "exists": True}
    if album_id:
        query["album_id"] = album_id
    if before:
        query["_id"] = {"$lt": before}

    cursor = mongo.get_medias_collection().find(query).sort("_id", DESCENDING).limit(limit)
    return await cursor.to_list(length=None)


async def remove_media(media_id: Any, user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Marks a media removed and deletes its files with previews.

    Raises:
        ResourceNotFoundError: Unknown media
        PermissionDeniedError: Media of another user
    """
    media = await get_media(media_id)
    if media["user_id"] != user["_id"]:
        raise PermissionDeniedError("Media belongs to another user")

    with LogContext(user_id=user["_id"], media_id=media["_id"]):
        await mongo.get_medias_collection().update_one({"_id": media["_id"]}, {"$set": {"exists": False}})
        await file_service.get_file_store().remove(media["file_id"], with_previews=True)
        await album_service.update_counters(media["album_id"])
        logger.info("🗑️ Media removed")

    media["exists"] = False
    return media


async def read_file(file_id: Any, size: Optional[str] = None) -> Tuple[bytes, str]:
    """
    Reads an original or one of its previews.

    Args:
        file_id: Original file id
        size: Preview size name; empty or 'orig' for the original

    Returns:
        (content, content_type)
    """
    oid = parse_object_id(file_id)
    if not oid:
        raise ResourceNotFoundError("File not found")

    store = file_service.get_file_store()
    if size and size != "orig":
        return await store.get(filename=file_service.preview_name(oid, size))
    return await store.get(file_id=oid)
