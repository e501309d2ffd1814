"""
app/client/uploader.py

Purpose: Client side media uploader

- Checks extension and size against the server uploads config
- Shrinks big bmp/jpg/png images before sending (EXIF kept)
- Uploads at most 4 files at once
- Abort and a single close confirmation while uploading
"""

import asyncio
from typing import Optional, Dict, Any, Callable, List, Tuple

from app.client.api import ForumClient, RpcError
from app.core.logging import get_logger
from app.services.uploads_config import get_mime_type
from utils import constants
from utils.image_utils import client_resize, encode_image, open_image, output_format
from utils.validation_utils import get_extension

logger = get_logger(__name__)

RESIZE_FORMATS = {"jpeg": "JPEG", "png": "PNG", "gif": "GIF"}


class FileRejected(Exception):
    """File did not pass a client side check."""


def resize_for_upload(data: bytes, resize: Dict[str, Any], jpeg_quality: Optional[int] = None) -> bytes:
    """
    Shrinks an image with the `orig` preview options.

    Args:
        data: Source image bytes
        resize: Preview options (width/height/max_width/max_height, type, jpeg_quality)
        jpeg_quality: Fallback quality

    Returns:
        Encoded image
    """
    image = open_image(data)
    exif = image.info.get("exif")
    fmt = RESIZE_FORMATS.get(resize.get("type"), output_format(image.format))
    resized = client_resize(image, resize)
    return encode_image(resized, fmt, quality=resize.get("jpeg_quality") or jpeg_quality, exif=exif)


class Uploader:
    """
    Uploads files into an album.

    Callbacks:
        on_progress(file_name, percent_or_message)
        on_error(message)
    """

    def __init__(
        self,
        client: ForumClient,
        on_progress: Optional[Callable[[str, Any], Any]] = None,
        on_error: Optional[Callable[[str], Any]] = None,
        concurrency: int = constants.UPLOAD_CONCURRENCY,
    ):
        self.client = client
        self.on_progress = on_progress or (lambda name, value: None)
        self.on_error = on_error or (lambda message: None)
        self.concurrency = concurrency
        self.config: Optional[Dict[str, Any]] = None
        self._tasks: List[asyncio.Task] = []
        self._aborted = False
        self._uploading = False
        self._confirmation_pending = False

    @property
    def is_uploading(self) -> bool:
        return self._uploading

    async def load_config(self) -> Dict[str, Any]:
        self.config = await self.client.rpc("GET", "/uploader/config")
        return self.config

    def check_file(self, file_name: str) -> str:
        ext = get_extension(file_name)
        if ext not in self.config["extensions"]:
            raise FileRejected(constants.ERR_INVALID_EXT.format(file_name=file_name))
        return ext

    def check_size(self, file_name: str, ext: str, data: bytes):
        type_config = self.config["types"].get(ext) or {}
        max_size = type_config.get("max_size") or self.config.get("max_size")
        if max_size and len(data) > max_size:
            raise FileRejected(constants.ERR_MAX_SIZE.format(file_name=file_name, max_size_kb=round(max_size / 1024)))

    async def resize_image(self, file_name: str, ext: str, data: bytes) -> bytes:
        """
        Shrinks resizable images bigger than `skip_size`; other files pass as-is.
        """
        if ext not in constants.CLIENT_RESIZABLE_EXTENSIONS:
            return data

        resize = ((self.config["types"].get(ext) or {}).get("resize") or {}).get("orig")
        if not resize or len(data) < resize.get("skip_size", 0):
            return data

        self.on_progress(file_name, constants.PROGRESS_COMPRESSING)
        try:
            return await asyncio.to_thread(resize_for_upload, data, resize, self.config.get("jpeg_quality"))
        except Exception as e:
            # Unreadable image; the server decides what to do with it
            logger.warning(f"Client resize failed for {file_name}: {e}")
            return data

    async def upload_file(self, file_name: str, data: bytes, url: str, csrf: str) -> Dict[str, Any]:
        self.on_progress(file_name, 0)
        ext = get_extension(file_name)
        result = await self.client.rpc(
            "POST",
            url,
            files={"file": (file_name, data, get_mime_type(ext))},
            data={"csrf": csrf},
        )
        self.on_progress(file_name, 100)
        return result["media"]

    async def _process(self, semaphore: asyncio.Semaphore, file_name: str, data: bytes,
                       url: str, csrf: str) -> Optional[Dict[str, Any]]:
        async with semaphore:
            try:
                ext = self.check_file(file_name)
                data = await self.resize_image(file_name, ext, data)
                self.check_size(file_name, ext, data)
                return await self.upload_file(file_name, data, url, csrf)

            except FileRejected as e:
                self.on_error(str(e))
            except RpcError as e:
                # Client errors are shown as the server wrote them
                self.on_error(e.message if e.is_client_error else constants.ERR_UPLOAD.format(file_name=file_name))
            except Exception as e:
                logger.error(f"Upload of {file_name} failed: {e}")
                self.on_error(constants.ERR_UPLOAD.format(file_name=file_name))
        return None

    async def add(self, files: List[Tuple[str, bytes]], url: str, csrf: str = "") -> List[Dict[str, Any]]:
        """
        Uploads files.

        Args:
            files: (file_name, content) pairs
            url: Upload endpoint (e.g. /media/upload?album_id=...)
            csrf: CSRF token sent with every file

        Returns:
            Uploaded medias, newest first
        """
        if self.config is None:
            await self.load_config()

        self._aborted = False
        self._uploading = True
        semaphore = asyncio.Semaphore(self.concurrency)
        self._tasks = [
            asyncio.create_task(self._process(semaphore, name, data, url, csrf))
            for name, data in files
        ]

        try:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self._uploading = False
            self._tasks = []

        # Aborted uploads come back as CancelledError and are dropped silently
        medias = [r for r in results if isinstance(r, dict)]
        medias.sort(key=lambda media: media.get("created_at") or "", reverse=True)

        logger.info(f"Uploaded {len(medias)} of {len(files)} files")
        return medias

    def abort(self):
        """Cancels running uploads and everything still queued."""
        self._aborted = True
        for task in self._tasks:
            if not task.done():
                task.cancel()

    async def close(self, confirm: Callable[[str], Any]) -> bool:
        """
        Asks to abort running uploads before closing.

        Only one confirmation is shown at a time; a second call while it
        is open returns False.

        Args:
            confirm: Sync or async callable receiving the question, returns bool

        Returns:
            True if the uploader may be closed
        """
        if not self._uploading or self._aborted:
            return True
        if self._confirmation_pending:
            return False

        self._confirmation_pending = True
        try:
            answer = confirm(constants.ABORT_CONFIRM)
            if asyncio.iscoroutine(answer):
                answer = await answer
        finally:
            self._confirmation_pending = False

        if answer:
            self.abort()
            return True
        return False
