"""
app/services/dialog_service.py

Purpose: Private dialogs

- Each participant owns a copy of the dialog and of its messages
- Sending creates (or revives) the dialog on both sides
- Message removal is soft; a dialog with no messages left is hidden
"""

from typing import Optional, Dict, Any, List

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from app.db import mongo
from app.core.exceptions import ClientError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.services import user_service
from utils import constants
from utils.time_utils import utcnow
from utils.validation_utils import escape_html, parse_object_id, sanitize_text

logger = get_logger(__name__)

PREVIEW_LENGTH = 100
DEFAULT_TITLE_LENGTH = 50


async def _fetch_own_dialog(user: Dict[str, Any], dialog_id: Any) -> Dict[str, Any]:
    oid = parse_object_id(dialog_id)
    dialog = None
    if oid:
        dialog = await mongo.get_dialogs_collection().find_one(
            {"_id": oid, "user": user["_id"], "exists": True}
        )
    if not dialog:
        raise ResourceNotFoundError("Dialog not found")
    return dialog


async def _refresh_cache(dialog_id: ObjectId) -> int:
    """
    Updates the dialog's last message cache.

    Returns:
        Number of visible messages left
    """
    messages = mongo.get_dlg_messages_collection()
    query = {"parent": dialog_id, "exists": True}

    count = await messages.count_documents(query)
    last = await messages.find_one(query, sort=[("_id", DESCENDING)])

    if last:
        await mongo.get_dialogs_collection().update_one(
            {"_id": dialog_id},
            {"$set": {
                "last_message": last["_id"],
                "cache.last_ts": last["ts"],
                "cache.last_user": last["user"],
                "cache.preview": last["md"][:PREVIEW_LENGTH],
            }}
        )
    return count


async def destroy_message(user: Optional[Dict[str, Any]], message_id: Any) -> Dict[str, int]:
    """
    Removes a message from the viewer's copy of a dialog.

    Args:
        user: Viewer (None for guests)
        message_id: Message to remove

    Returns:
        {"message_count": visible messages left in the dialog}

    Raises:
        ResourceNotFoundError: Guest viewer, unknown message, or a dialog the viewer does not own
    """
    if not user:
        raise ResourceNotFoundError("Message not found")

    oid = parse_object_id(message_id)
    message = await mongo.get_dlg_messages_collection().find_one({"_id": oid, "exists": True}) if oid else None
    if not message:
        raise ResourceNotFoundError("Message not found")

    dialogs = mongo.get_dialogs_collection()
    dialog = await dialogs.find_one({"_id": message["parent"], "user": user["_id"], "exists": True})
    if not dialog:
        raise ResourceNotFoundError("Message not found")

    with LogContext(user_id=user["_id"], dialog_id=dialog["_id"]):
        await mongo.get_dlg_messages_collection().update_one(
            {"_id": message["_id"]}, {"$set": {"exists": False}}
        )

        message_count = await _refresh_cache(dialog["_id"])
        if message_count == 0:
            await dialogs.update_one({"_id": dialog["_id"]}, {"$set": {"exists": False}})
            logger.info("Dialog hidden, last message removed")

        logger.info(f"Message {message['_id']} removed")

    return {"message_count": message_count}


async def _get_or_create_dialog(owner_id: ObjectId, opponent_id: ObjectId, title: str) -> Dict[str, Any]:
    dialogs = mongo.get_dialogs_collection()
    dialog = await dialogs.find_one({"user": owner_id, "to": opponent_id})

    if dialog:
        if not dialog.get("exists"):
            await dialogs.update_one({"_id": dialog["_id"]}, {"$set": {"exists": True}})
            dialog["exists"] = True
        return dialog

    dialog = {
        "user": owner_id,
        "to": opponent_id,
        "title": title,
        "last_message": None,
        "cache": {},
        "exists": True,
    }
    result = await dialogs.insert_one(dialog)
    dialog["_id"] = result.inserted_id
    return dialog


async def send_message(user: Dict[str, Any], to_nick: str, text: str, title: str = "") -> Dict[str, Any]:
    """
    Sends a private message, writing a copy into both participants' dialogs.

    Args:
        user: Sender
        to_nick: Recipient nick
        text: Message markdown
        title: Dialog title for a new dialog (defaults to the text start)

    Returns:
        {"dialog", "message"} from the sender's side

    Raises:
        ClientError: Unknown recipient, self-messaging, empty text
    """
    text = sanitize_text(text)
    if not text:
        raise ClientError(constants.DIALOG_EMPTY_MESSAGE, fields=["text"])

    recipient = await user_service.get_user_by_nick(to_nick or "")
    if not recipient or not recipient.get("exists"):
        raise ClientError(constants.DIALOG_UNKNOWN_RECIPIENT, fields=["to"])
    if recipient["_id"] == user["_id"]:
        raise ClientError(constants.DIALOG_TO_SELF, fields=["to"])

    title = sanitize_text(title, max_length=DEFAULT_TITLE_LENGTH) or text[:DEFAULT_TITLE_LENGTH]
    html = escape_html(text)
    now = utcnow()
    messages = mongo.get_dlg_messages_collection()

    result = {}
    for owner, opponent in ((user, recipient), (recipient, user)):
        dialog = await _get_or_create_dialog(owner["_id"], opponent["_id"], title)
        message = {
            "parent": dialog["_id"],
            "user": user["_id"],
            "md": text,
            "html": html,
            "ts": now,
            "exists": True,
        }
        inserted = await messages.insert_one(message)
        message["_id"] = inserted.inserted_id
        await _refresh_cache(dialog["_id"])

        if owner is user:
            result = {"dialog": dialog, "message": message}

    with LogContext(user_id=user["_id"], dialog_id=result["dialog"]["_id"]):
        logger.info(f"✉️ Message sent to {recipient['nick']}")

    return result


async def list_dialogs(user: Dict[str, Any], limit: int = 50) -> List[Dict[str, Any]]:
    """
    Viewer's visible dialogs, most recent activity first, with opponent info.
    """
    cursor = mongo.get_dialogs_collection().find(
        {"user": user["_id"], "exists": True}
    ).sort("cache.last_ts", DESCENDING).limit(limit)
    dialogs = await cursor.to_list(length=None)

    opponents = await user_service.get_users_by_ids([d["to"] for d in dialogs])
    by_id = {u["_id"]: u for u in opponents}

    for dialog in dialogs:
        opponent = by_id.get(dialog["to"])
        dialog["opponent"] = {"hid": opponent["hid"], "nick": opponent["nick"], "name": opponent.get("name")} if opponent else None

    return dialogs


async def list_messages(user: Dict[str, Any], dialog_id: Any) -> Dict[str, Any]:
    """
    Visible messages of a dialog owned by the viewer, oldest first.

    Raises:
        ResourceNotFoundError: Unknown dialog or dialog of another user
    """
    dialog = await _fetch_own_dialog(user, dialog_id)
    cursor = mongo.get_dlg_messages_collection().find(
        {"parent": dialog["_id"], "exists": True}
    ).sort("_id", ASCENDING)
    return {"dialog": dialog, "messages": await cursor.to_list(length=None)}
