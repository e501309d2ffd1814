"""
app/services/album_service.py

Purpose: Albums and the album page

- Album CRUD for a user
- Default album for uploads without an explicit album
- Cached counters (media count, cover, last update)
- Album page data (owner, medias, embed providers, head, breadcrumbs)
"""

from typing import Optional, Dict, Any, List

from bson import ObjectId
from pymongo import DESCENDING

from app.db import mongo
from app.core.config import settings
from app.core.exceptions import ClientError, PermissionDeniedError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.services import user_service
from utils import constants
from utils.time_utils import utcnow
from utils.validation_utils import parse_object_id, sanitize_text

logger = get_logger(__name__)

ALBUM_TITLE_MAX_LENGTH = 255


async def create_album(user: Dict[str, Any], title: str, default: bool = False) -> Dict[str, Any]:
    """
    Creates an album for a user.

    Args:
        user: Owner
        title: Album title (may be empty for the default album)
        default: Whether this is the user's default upload album

    Returns:
        Created album document
    """
    title = sanitize_text(title or "", max_length=ALBUM_TITLE_MAX_LENGTH)
    if not title and not default:
        raise ClientError("Album title is empty.", fields=["title"])

    album = {
        "user_id": user["_id"],
        "title": title,
        "count": 0,
        "cover_id": None,
        "last_ts": utcnow(),
        "default": default,
    }
    result = await mongo.get_albums_collection().insert_one(album)
    album["_id"] = result.inserted_id

    with LogContext(user_id=user["_id"]):
        logger.info(f"Album created: {album['_id']}")

    return album


async def get_default_album(user: Dict[str, Any]) -> Dict[str, Any]:
    """Returns the user's default album, creating it on first use."""
    album = await mongo.get_albums_collection().find_one({"user_id": user["_id"], "default": True})
    if album:
        return album
    return await create_album(user, "", default=True)


async def list_albums(user_id: ObjectId) -> List[Dict[str, Any]]:
    """
    User's albums, default album first, then the most recently updated.
    """
    cursor = mongo.get_albums_collection().find({"user_id": user_id}).sort(
        [("default", DESCENDING), ("last_ts", DESCENDING)]
    )
    return await cursor.to_list(length=None)


async def fetch_album(album_id: Any) -> Dict[str, Any]:
    """
    Fetches an album by id.

    Raises:
        ResourceNotFoundError: For a malformed or unknown id
    """
    oid = parse_object_id(album_id)
    album = await mongo.get_albums_collection().find_one({"_id": oid}) if oid else None
    if not album:
        raise ResourceNotFoundError("Album not found")
    return album


async def fetch_own_album(album_id: Any, user: Dict[str, Any]) -> Dict[str, Any]:
    album = await fetch_album(album_id)
    if album["user_id"] != user["_id"]:
        raise PermissionDeniedError("Album belongs to another user")
    return album


async def update_counters(album_id: ObjectId):
    """
    Recalculates media count, cover and last update time of an album.
    """
    medias = mongo.get_medias_collection()
    query = {"album_id": album_id, "exists": True}

    count = await medias.count_documents(query)
    latest_image = await medias.find_one({**query, "type": "image"}, sort=[("_id", DESCENDING)])

    await mongo.get_albums_collection().update_one(
        {"_id": album_id},
        {"$set": {
            "count": count,
            "cover_id": latest_image["file_id"] if latest_image else None,
            "last_ts": utcnow(),
        }}
    )


def album_title(album: Dict[str, Any]) -> str:
    return album.get("title") or constants.ALBUM_DEFAULT_NAME


def get_medialink_providers() -> List[Dict[str, str]]:
    """Enabled embed providers as {home, name}."""
    return [
        {"home": f"http://{provider['id']}", "name": provider["id"]}
        for provider in settings.MEDIALINK_PROVIDERS
        if provider.get("enabled")
    ]


async def album_page(hid: int, album_id: Optional[str], viewer_is_member: bool) -> Dict[str, Any]:
    """
    Collects album page data.

    Without `album_id` the page lists every media of the user.

    Args:
        hid: Owner hid
        album_id: Album to show, optional
        viewer_is_member: Members see real names, guests see nicks

    Returns:
        {"user", "album", "medias", "medialink_providers", "head", "breadcrumbs"}

    Raises:
        ResourceNotFoundError: Unknown user, unknown album, or album of another user
    """
    user = await user_service.fetch_user_by_hid(hid)
    medias = mongo.get_medias_collection()

    album = None
    if album_id:
        album = await fetch_album(album_id)
        if album["user_id"] != user["_id"]:
            raise ResourceNotFoundError("Album not found")
        album = {**album, "title": album_title(album)}
        cursor = medias.find({"album_id": album["_id"], "exists": True}).sort("_id", DESCENDING)
    else:
        cursor = medias.find({"user_id": user["_id"], "exists": True}).sort("_id", DESCENDING)

    username = user_service.display_name(user, viewer_is_member)

    if album:
        title = constants.ALBUM_TITLE_WITH_USER.format(album=album["title"], username=username)
    else:
        title = constants.ALBUMS_TITLE_WITH_USER.format(username=username)

    breadcrumbs = [
        {"text": username, "url": f"/users/{hid}"},
        {"text": constants.BREADCRUMB_ALBUMS, "url": f"/users/{hid}/albums"},
    ]

    return {
        "user": user,
        "album": album,
        "medias": await cursor.to_list(length=None),
        "medialink_providers": get_medialink_providers(),
        "head": {"title": title},
        "breadcrumbs": breadcrumbs,
    }
