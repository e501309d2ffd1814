"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collection accessors for every forum collection
- GridFS bucket for uploaded files and previews
- Health checks and retry logic
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None

# Collection names
USERS = "users"
AUTH_LINKS = "auth_links"
RESET_PASSWORD_TOKENS = "reset_password_tokens"
AUTH_SESSIONS = "auth_sessions"
AUTH_REDIRECTS = "auth_redirects"
DIALOGS = "dialogs"
DLG_MESSAGES = "dlg_messages"
ALBUMS = "albums"
MEDIAS = "medias"
USERGROUPS = "usergroups"
INFRACTIONS = "infractions"
RATE_LIMITS = "rate_limits"
COUNTERS = "counters"


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def set_database(database: Optional[AsyncIOMotorDatabase]):
    """
    Installs an already created database handle (used by scripts and tests).
    """
    global _database
    _database = database


def _get_database() -> AsyncIOMotorDatabase:
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_collection(name: str):
    """
    Returns a collection by name.

    Raises:
        RuntimeError: If database is not initialized
    """
    return _get_database()[name]


def get_users_collection():
    """
    Users: hid (int, unique), nick (unique), name, email,
    usergroups (list of ObjectId), joined_ts, exists.
    """
    return get_collection(USERS)


def get_auth_links_collection():
    """
    Plain auth links: user_id, type, email, providers[], ip, ts, exist.
    """
    return get_collection(AUTH_LINKS)


def get_reset_tokens_collection():
    return get_collection(RESET_PASSWORD_TOKENS)


def get_sessions_collection():
    return get_collection(AUTH_SESSIONS)


def get_redirects_collection():
    return get_collection(AUTH_REDIRECTS)


def get_dialogs_collection():
    return get_collection(DIALOGS)


def get_dlg_messages_collection():
    return get_collection(DLG_MESSAGES)


def get_albums_collection():
    return get_collection(ALBUMS)


def get_medias_collection():
    return get_collection(MEDIAS)


def get_usergroups_collection():
    return get_collection(USERGROUPS)


def get_infractions_collection():
    return get_collection(INFRACTIONS)


def get_rate_limits_collection():
    return get_collection(RATE_LIMITS)


def get_counters_collection():
    return get_collection(COUNTERS)


def get_gridfs_bucket() -> AsyncIOMotorGridFSBucket:
    """
    Returns the GridFS bucket holding originals and previews.
    """
    return AsyncIOMotorGridFSBucket(_get_database(), bucket_name=settings.GRIDFS_BUCKET)
