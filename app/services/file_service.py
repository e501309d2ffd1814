"""
app/services/file_service.py

Purpose: Uploaded file storage (GridFS)

- Stores originals and previews with their content type
- Reads files back by id or by preview name (<orig_id>_<size>)
- Removes originals together with their previews
"""

import re
from typing import Optional, Dict, Any, Tuple, Union

from bson import ObjectId
from gridfs.errors import NoFile

from app.db import mongo
from app.core.exceptions import FileStorageError, ResourceNotFoundError
from app.core.logging import get_logger

logger = get_logger(__name__)


def preview_name(file_id: Union[ObjectId, str], size: str) -> str:
    """GridFS filename of a preview."""
    return f"{file_id}_{size}"


class FileStore:
    """GridFS backed storage for uploaded files."""

    def _bucket(self):
        return mongo.get_gridfs_bucket()

    async def put(
        self,
        data: bytes,
        filename: Optional[str] = None,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ObjectId:
        """
        Stores a file.

        Args:
            data: File content
            filename: GridFS filename (previews use `<orig_id>_<size>`)
            content_type: MIME type, kept in metadata
            metadata: Extra metadata

        Returns:
            Id of the stored file
        """
        meta = {**(metadata or {}), "contentType": content_type}
        file_id = ObjectId()
        try:
            await self._bucket().upload_from_stream_with_id(
                file_id, filename or str(file_id), data, metadata=meta
            )
        except Exception as e:
            logger.error(f"Failed to store file {filename or file_id}: {e}", exc_info=True)
            raise FileStorageError() from e
        return file_id

    async def get(self, file_id: Optional[ObjectId] = None, filename: Optional[str] = None) -> Tuple[bytes, str]:
        """
        Reads a file by id or by filename.

        Returns:
            (content, content_type)

        Raises:
            ResourceNotFoundError: If there is no such file
        """
        bucket = self._bucket()
        try:
            if file_id is not None:
                stream = await bucket.open_download_stream(file_id)
            else:
                stream = await bucket.open_download_stream_by_name(filename)
        except NoFile:
            raise ResourceNotFoundError("File not found")

        data = await stream.read()
        content_type = (stream.metadata or {}).get("contentType", "application/octet-stream")
        return data, content_type

    async def remove(self, file_id: ObjectId, with_previews: bool = False):
        """
        Deletes a file, and every `<file_id>_*` preview when asked to.
        """
        bucket = self._bucket()
        ids = [file_id]

        if with_previews:
            cursor = bucket.find({"filename": {"$regex": f"^{re.escape(str(file_id))}_"}})
            async for grid_out in cursor:
                ids.append(grid_out._id)

        for fid in ids:
            try:
                await bucket.delete(fid)
            except NoFile:
                logger.debug(f"File {fid} already removed")

        logger.info(f"Removed file {file_id} ({len(ids) - 1} previews)")


_file_store: Optional[FileStore] = None


def get_file_store() -> FileStore:
    """Get or create the file store instance."""
    global _file_store
    if _file_store is None:
        _file_store = FileStore()
    return _file_store
