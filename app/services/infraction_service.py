"""
app/services/infraction_service.py

Purpose: Moderation infractions

- Lists infractions issued to a user
- Fills source info for infractions issued for dialog messages
"""

from typing import Optional, Dict, Any, List

from pymongo import DESCENDING

from app.db import mongo
from app.core.exceptions import PermissionDeniedError
from app.core.logging import get_logger
from app.services import user_service, usergroup_service
from utils import constants

logger = get_logger(__name__)


async def dialog_message_info(
    infractions: List[Dict[str, Any]],
    viewer_id: Optional[Any],
    viewer_is_member: bool = True,
) -> Dict[str, Dict[str, str]]:
    """
    Source info for infractions issued for dialog messages.

    Only messages from dialogs owned by the viewer are described.

    Args:
        infractions: Infraction documents
        viewer_id: Viewer's user id
        viewer_is_member: Members see real names, guests see nicks

    Returns:
        {str(message_id): {"title": opponent name, "url": message link, "text": markdown}}
    """
    message_ids = [
        inf["src"] for inf in infractions
        if inf.get("src_type") == constants.CONTENT_TYPE_DIALOG_MESSAGE
    ]
    if not message_ids or not viewer_id:
        return {}

    messages = await mongo.get_dlg_messages_collection().find(
        {"_id": {"$in": message_ids}}
    ).to_list(length=None)
    if not messages:
        return {}

    dialogs = await mongo.get_dialogs_collection().find(
        {"_id": {"$in": list({m["parent"] for m in messages})}, "user": viewer_id}
    ).to_list(length=None)
    dialogs_by_id = {d["_id"]: d for d in dialogs}

    opponents = await user_service.get_users_by_ids(list({d["to"] for d in dialogs}))
    opponents_by_id = {u["_id"]: u for u in opponents}

    info = {}
    for message in messages:
        dialog = dialogs_by_id.get(message["parent"])
        if not dialog:
            continue

        opponent = opponents_by_id.get(dialog["to"])
        info[str(message["_id"])] = {
            "title": user_service.display_name(opponent, viewer_is_member) if opponent else "",
            "url": f"/dialogs/{dialog['_id']}#{message['_id']}",
            "text": message["md"],
        }

    return info


async def list_infractions(hid: int, viewer: Dict[str, Any]) -> Dict[str, Any]:
    """
    Infractions of a user with source info.

    Visible to the user and to administrators.

    Returns:
        {"user", "infractions", "content_info"}

    Raises:
        ResourceNotFoundError: Unknown user
        PermissionDeniedError: Viewer is someone else and not an admin
    """
    user = await user_service.fetch_user_by_hid(hid)

    if user["_id"] != viewer["_id"] and not await usergroup_service.is_admin(viewer):
        raise PermissionDeniedError("Infractions are private")

    infractions = await mongo.get_infractions_collection().find(
        {"for": user["_id"], "exists": True}
    ).sort("ts", DESCENDING).to_list(length=None)

    return {
        "user": user,
        "infractions": infractions,
        "content_info": await dialog_message_info(infractions, viewer["_id"]),
    }
