"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- TTL indexes for automatic cleanup of tokens, sessions and rate limits
"""

from pymongo import ASCENDING, DESCENDING

from app.db import mongo
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        logger.info("Creating database indexes...")

        # ==============================================
        # USERS & AUTH
        # ==============================================

        users = mongo.get_users_collection()
        await users.create_index("hid", unique=True, name="hid_unique")
        await users.create_index("nick", unique=True, name="nick_unique")
        await users.create_index("email", name="email_idx", sparse=True)

        auth_links = mongo.get_auth_links_collection()
        await auth_links.create_index(
            [("email", ASCENDING), ("type", ASCENDING), ("exist", ASCENDING)],
            name="authlink_email_idx"
        )
        await auth_links.create_index(
            [("user_id", ASCENDING), ("type", ASCENDING), ("exist", ASCENDING)],
            name="authlink_user_idx"
        )

        tokens = mongo.get_reset_tokens_collection()
        await tokens.create_index("secret_key", unique=True, name="secret_key_unique")
        await tokens.create_index("authprovider_id", name="authprovider_idx")
        await tokens.create_index("expires_at", expireAfterSeconds=0, name="reset_token_ttl_idx")

        sessions = mongo.get_sessions_collection()
        await sessions.create_index("token", unique=True, name="session_token_unique")
        await sessions.create_index("expires_at", expireAfterSeconds=0, name="session_ttl_idx")

        redirects = mongo.get_redirects_collection()
        await redirects.create_index("created_at", expireAfterSeconds=3600, name="redirect_ttl_idx")

        logger.debug("Created users/auth indexes")

        # ==============================================
        # DIALOGS
        # ==============================================

        dialogs = mongo.get_dialogs_collection()
        await dialogs.create_index(
            [("user", ASCENDING), ("exists", ASCENDING), ("cache.last_ts", DESCENDING)],
            name="dialog_user_idx"
        )
        await dialogs.create_index([("user", ASCENDING), ("to", ASCENDING)], name="dialog_pair_idx")

        messages = mongo.get_dlg_messages_collection()
        await messages.create_index(
            [("parent", ASCENDING), ("exists", ASCENDING), ("_id", DESCENDING)],
            name="dlg_message_parent_idx"
        )

        logger.debug("Created dialog indexes")

        # ==============================================
        # ALBUMS & MEDIA
        # ==============================================

        albums = mongo.get_albums_collection()
        await albums.create_index([("user_id", ASCENDING), ("last_ts", DESCENDING)], name="album_user_idx")

        medias = mongo.get_medias_collection()
        # Media page, routing
        await medias.create_index("file_id", name="media_file_idx")
        # Album page; medias count per album is small, sorting is done in memory
        await medias.create_index("album_id", name="media_album_idx")
        # "All medias" page, sorted by date
        await medias.create_index([("user_id", ASCENDING), ("_id", DESCENDING)], name="media_user_idx")

        logger.debug("Created media indexes")

        # ==============================================
        # ADMIN & MODERATION
        # ==============================================

        usergroups = mongo.get_usergroups_collection()
        await usergroups.create_index("short_name", unique=True, name="usergroup_name_unique")

        infractions = mongo.get_infractions_collection()
        await infractions.create_index([("for", ASCENDING), ("ts", DESCENDING)], name="infraction_for_idx")
        await infractions.create_index([("src", ASCENDING)], name="infraction_src_idx")

        rate_limits = mongo.get_rate_limits_collection()
        await rate_limits.create_index(
            [("key", ASCENDING), ("bucket", ASCENDING)], unique=True, name="rate_limit_key_unique"
        )
        await rate_limits.create_index("expires_at", expireAfterSeconds=0, name="rate_limit_ttl_idx")

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio

    async def main():
        await mongo.connect_to_mongo()
        await create_indexes()
        await mongo.close_mongo_connection()

    asyncio.run(main())
