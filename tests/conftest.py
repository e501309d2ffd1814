import io

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient
from PIL import Image

from app.core.exceptions import ResourceNotFoundError
from app.db import mongo
from app.services import file_service, user_service, usergroup_service


class MemoryFileStore(file_service.FileStore):
    """In-memory replacement for the GridFS store."""

    def __init__(self):
        self.files = {}

    async def put(self, data, filename=None, content_type="application/octet-stream", metadata=None):
        file_id = ObjectId()
        self.files[file_id] = {
            "filename": filename or str(file_id),
            "data": data,
            "content_type": content_type,
            "metadata": metadata or {},
        }
        return file_id

    async def get(self, file_id=None, filename=None):
        for fid, entry in self.files.items():
            if (file_id is not None and fid == file_id) or (file_id is None and entry["filename"] == filename):
                return entry["data"], entry["content_type"]
        raise ResourceNotFoundError("File not found")

    async def remove(self, file_id, with_previews=False):
        prefix = f"{file_id}_"
        for fid in list(self.files):
            if fid == file_id or (with_previews and self.files[fid]["filename"].startswith(prefix)):
                del self.files[fid]

    def names(self):
        return sorted(entry["filename"] for entry in self.files.values())


@pytest.fixture(autouse=True)
def db():
    database = AsyncMongoMockClient()["forum_test"]
    mongo.set_database(database)
    yield database
    mongo.set_database(None)


@pytest.fixture(autouse=True)
def file_store(monkeypatch):
    store = MemoryFileStore()
    monkeypatch.setattr(file_service, "_file_store", store)
    return store


@pytest.fixture
async def groups(db):
    await usergroup_service.seed_default_groups()
    return {g["short_name"]: g for g in await usergroup_service.list_groups()}


@pytest.fixture
def make_user(groups):
    async def factory(nick="alice", email=None, password="secret123", ip="127.0.0.1"):
        return await user_service.register(email or f"{nick}@example.com", nick, password, ip)
    return factory


def make_image(width=100, height=100, fmt="JPEG", color=(200, 50, 50), mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return make_image
