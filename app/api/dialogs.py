"""
app/api/dialogs.py

Purpose: Private dialogs endpoints
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, require_member
from app.core.exceptions import PermissionDeniedError
from app.schemas.media import MessageCountResponse, SendMessageRequest
from app.services import dialog_service, usergroup_service
from utils.serialization import to_public, to_public_list

router = APIRouter(prefix="/dialogs")


@router.get("")
async def list_dialogs(user: Dict[str, Any] = Depends(require_member)):
    dialogs = await dialog_service.list_dialogs(user)
    return {"dialogs": to_public_list(dialogs)}


@router.post("")
async def send_message(body: SendMessageRequest, user: Dict[str, Any] = Depends(require_member)):
    if not await usergroup_service.get_user_setting(user, "can_send_messages"):
        raise PermissionDeniedError("Sending messages is not allowed")

    result = await dialog_service.send_message(user, body.to, body.text, body.title or "")
    return {"dialog": to_public(result["dialog"]), "message": to_public(result["message"])}


@router.get("/{dialog_id}")
async def list_messages(dialog_id: str, user: Dict[str, Any] = Depends(require_member)):
    result = await dialog_service.list_messages(user, dialog_id)
    return {"dialog": to_public(result["dialog"]), "messages": to_public_list(result["messages"])}


@router.post("/messages/{message_id}/destroy", response_model=MessageCountResponse)
async def destroy_message(message_id: str, user: Optional[Dict[str, Any]] = Depends(get_current_user)):
    """
    Removes a message from the viewer's dialog. Guests get 404.
    """
    return await dialog_service.destroy_message(user, message_id)
