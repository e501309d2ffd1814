"""
Database initialization script

Run once to create indexes and the default usergroups:
    python scripts/init_db.py

Optionally promote an existing user to administrators:
    python scripts/init_db.py --admin <nick>
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are read
load_dotenv()

from app.core.logging import setup_logging, get_logger
from app.db import mongo
from app.db.indexes import create_indexes
from app.services.usergroup_service import seed_default_groups
from utils import constants

setup_logging()
logger = get_logger("scripts.init_db")


async def promote_admin(nick: str) -> bool:
    group = await mongo.get_usergroups_collection().find_one({"short_name": constants.ADMIN_GROUP})
    result = await mongo.get_users_collection().update_one(
        {"nick": nick}, {"$addToSet": {"usergroups": group["_id"]}}
    )
    if result.matched_count == 0:
        logger.error(f"❌ User '{nick}' not found")
        return False
    logger.info(f"✅ {nick} added to {constants.ADMIN_GROUP}")
    return True


async def main(admin_nick: str = None):
    await mongo.connect_to_mongo()
    try:
        await create_indexes()
        created = await seed_default_groups()
        logger.info(f"📋 Usergroups ready ({created} created)")

        if admin_nick:
            await promote_admin(admin_nick)
    finally:
        await mongo.close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create indexes and default usergroups")
    parser.add_argument("--admin", help="Nick of a user to add to administrators")
    args = parser.parse_args()

    asyncio.run(main(args.admin))
