"""
app/api/users.py

Purpose: User profile, albums and infractions endpoints
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, require_member
from app.core.exceptions import PermissionDeniedError
from app.core.logging import get_logger
from app.schemas.media import CreateAlbumRequest
from app.services import album_service, infraction_service, user_service, usergroup_service
from utils.serialization import to_public, to_public_list

logger = get_logger(__name__)
router = APIRouter(prefix="/users")

PUBLIC_USER_FIELDS = ("_id", "hid", "nick", "name", "joined_ts")


def _public_user(user: Dict[str, Any], viewer: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = {key: user.get(key) for key in PUBLIC_USER_FIELDS}
    if not viewer:
        data.pop("name")
    return to_public(data)


@router.get("/{hid}")
async def get_user(hid: int, viewer: Optional[Dict[str, Any]] = Depends(get_current_user)):
    user = await user_service.fetch_user_by_hid(hid)
    return {"user": _public_user(user, viewer)}


@router.get("/{hid}/albums")
async def list_albums(hid: int, viewer: Optional[Dict[str, Any]] = Depends(get_current_user)):
    user = await user_service.fetch_user_by_hid(hid)
    albums = await album_service.list_albums(user["_id"])
    for album in albums:
        album["title"] = album_service.album_title(album)
    return {"user": _public_user(user, viewer), "albums": to_public_list(albums)}


@router.post("/{hid}/albums")
async def create_album(hid: int, body: CreateAlbumRequest, viewer: Dict[str, Any] = Depends(require_member)):
    user = await user_service.fetch_user_by_hid(hid)
    if user["_id"] != viewer["_id"]:
        raise PermissionDeniedError("Albums can only be created for yourself")
    if not await usergroup_service.get_user_setting(viewer, "can_create_albums"):
        raise PermissionDeniedError("Album creation is not allowed")

    album = await album_service.create_album(viewer, body.title)
    return {"album": to_public(album)}


@router.get("/{hid}/album")
@router.get("/{hid}/album/{album_id}")
async def album_page(
    hid: int,
    album_id: Optional[str] = None,
    viewer: Optional[Dict[str, Any]] = Depends(get_current_user),
):
    """
    Album page data; without `album_id` lists every media of the user.
    """
    page = await album_service.album_page(hid, album_id, viewer_is_member=viewer is not None)
    page["user"] = _public_user(page["user"], viewer)
    page["album"] = to_public(page["album"])
    page["medias"] = to_public_list(page["medias"])
    return page


@router.get("/{hid}/infractions")
async def list_infractions(hid: int, viewer: Dict[str, Any] = Depends(require_member)):
    result = await infraction_service.list_infractions(hid, viewer)
    return {
        "user": _public_user(result["user"], viewer),
        "infractions": to_public_list(result["infractions"]),
        "content_info": result["content_info"],
    }
