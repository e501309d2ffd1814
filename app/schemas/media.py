"""
app/schemas/media.py

Pydantic models for albums, media and dialogs endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional


class CreateAlbumRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Album title")


class SendMessageRequest(BaseModel):
    """New private message."""

    to: str = Field(..., description="Recipient nick")
    text: str = Field(..., description="Message markdown")
    title: Optional[str] = Field(default="", description="Title for a new dialog")


class MessageCountResponse(BaseModel):
    message_count: int = Field(..., description="Visible messages left in the dialog")
