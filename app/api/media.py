"""
app/api/media.py

Purpose: Uploads and media endpoints

- Uploader config for clients
- Multipart upload into an album
- Media info and removal
- File download (original or preview)
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response

from app.api.deps import require_member
from app.core.logging import get_logger
from app.services import media_service
from app.services.uploads_config import get_uploads_config
from utils.serialization import to_public

logger = get_logger(__name__)
router = APIRouter()


@router.get("/uploader/config")
async def uploader_config():
    """Parsed uploads config: allowed extensions, sizes and resize options."""
    return get_uploads_config()


@router.post("/media/upload")
async def upload_media(
    file: UploadFile = File(...),
    album_id: Optional[str] = Query(None),
    description: str = Form(""),
    csrf: Optional[str] = Form(None),
    user: Dict[str, Any] = Depends(require_member),
):
    # Reject by declared size first, then read no more than one byte over the limit
    _, max_size = media_service.check_upload(file.filename or "", file.size or 0)
    data = await file.read(int(max_size) + 1 if max_size else -1)
    media = await media_service.create_media(user, album_id, file.filename or "", data, description)
    return {"media": to_public(media)}


@router.get("/media/{media_id}")
async def get_media(media_id: str):
    media = await media_service.get_media(media_id)
    return {"media": to_public(media)}


@router.delete("/media/{media_id}")
async def remove_media(media_id: str, user: Dict[str, Any] = Depends(require_member)):
    media = await media_service.remove_media(media_id, user)
    return {"media": to_public(media)}


@router.get("/files/{file_id}")
async def download_file(file_id: str, size: Optional[str] = Query(None)):
    data, content_type = await media_service.read_file(file_id, size)
    return Response(content=data, media_type=content_type)
