"""
app/services/user_service.py

Purpose: User data management

- Registration (user record + plain auth link)
- Nick availability checks
- Lookups by hid, nick, email and id
- Sequential human-readable ids (hid)
"""

from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from app.db import mongo
from app.core.config import settings
from app.core.exceptions import ClientError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.core.security import hash_password, validate_password
from utils import constants
from utils.time_utils import utcnow
from utils.validation_utils import validate_nick, validate_email

logger = get_logger(__name__)


async def next_hid() -> int:
    """
    Allocates the next user hid.

    Returns:
        New sequential id, starting from 1
    """
    counters = mongo.get_counters_collection()
    counter = await counters.find_one_and_update(
        {"_id": "users.hid"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER
    )
    return counter["seq"]


async def get_user_by_id(user_id: ObjectId) -> Optional[Dict[str, Any]]:
    users = mongo.get_users_collection()
    return await users.find_one({"_id": user_id})


async def get_user_by_hid(hid: int) -> Optional[Dict[str, Any]]:
    users = mongo.get_users_collection()
    return await users.find_one({"hid": hid, "exists": True})


async def get_user_by_nick(nick: str) -> Optional[Dict[str, Any]]:
    users = mongo.get_users_collection()
    return await users.find_one({"nick": nick})


async def get_users_by_ids(user_ids: List[ObjectId]) -> List[Dict[str, Any]]:
    users = mongo.get_users_collection()
    return await users.find({"_id": {"$in": list(user_ids)}}).to_list(length=None)


async def fetch_user_by_hid(hid: int) -> Dict[str, Any]:
    """
    Fetches a visible user by hid.

    Raises:
        ResourceNotFoundError: If there is no such user
    """
    user = await get_user_by_hid(hid)
    if not user:
        raise ResourceNotFoundError(f"User {hid} not found")
    return user


async def find_by_email_or_nick(email_or_nick: str) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """
    Finds a user and its plain auth link by login.

    The login is tried as an email first, then as a nick.

    Returns:
        (user, authlink), either may be None
    """
    auth_links = mongo.get_auth_links_collection()

    authlink = await auth_links.find_one({"email": email_or_nick, "type": "plain", "exist": True})
    if authlink:
        user = await mongo.get_users_collection().find_one({"_id": authlink["user_id"], "exists": True})
        return user, authlink

    user = await mongo.get_users_collection().find_one({"nick": email_or_nick, "exists": True})
    if not user:
        return None, None

    authlink = await auth_links.find_one({"user_id": user["_id"], "type": "plain", "exist": True})
    return user, authlink


def display_name(user: Dict[str, Any], viewer_is_member: bool) -> str:
    """
    Members see real names, guests see nicks.
    """
    if viewer_is_member:
        return user.get("name") or user.get("nick")
    return user.get("nick")


async def check_nick(nick: str) -> bool:
    """
    Checks nick format and availability.

    Raises:
        ClientError: With a field-level message for `nick`
    """
    if not validate_nick(nick):
        raise ClientError(constants.NICK_INVALID, fields=["nick"], details={"nick": constants.NICK_INVALID})

    if await get_user_by_nick(nick):
        raise ClientError(constants.NICK_BUSY, fields=["nick"], details={"nick": constants.NICK_BUSY})

    return True


async def register(email: str, nick: str, password: str, ip: str) -> Dict[str, Any]:
    """
    Creates a user with a plain (email/password) auth link.

    Args:
        email: Login email
        nick: Public nick
        password: Plain password
        ip: Client IP

    Returns:
        Created user document

    Raises:
        ClientError: With field-level messages for every invalid input
    """
    errors: Dict[str, str] = {}
    email = (email or "").strip()

    if not validate_email(email):
        errors["email"] = constants.EMAIL_INVALID
    elif await mongo.get_auth_links_collection().find_one({"email": email, "exist": True}):
        errors["email"] = constants.EMAIL_BUSY

    try:
        await check_nick(nick)
    except ClientError as e:
        errors["nick"] = e.message

    if not validate_password(password):
        errors["pass"] = constants.BAD_PASSWORD

    if errors:
        raise ClientError("Registration failed", fields=list(errors), details=errors)

    now = utcnow()
    group = await mongo.get_usergroups_collection().find_one({"short_name": settings.DEFAULT_USERGROUP})

    user = {
        "_id": ObjectId(),
        "hid": await next_hid(),
        "nick": nick,
        "name": nick,
        "email": email,
        "usergroups": [group["_id"]] if group else [],
        "joined_ts": now,
        "joined_ip": ip,
        "exists": True,
    }

    with LogContext(user_id=user["_id"], ip=ip):
        await mongo.get_users_collection().insert_one(user)

        password_hash = hash_password(password)
        await mongo.get_auth_links_collection().insert_one({
            "user_id": user["_id"],
            "type": "plain",
            "email": email,
            "providers": [
                {"_id": ObjectId(), "type": "plain", "email": email, "pass": password_hash}
            ],
            "ip": ip,
            "ts": now,
            "exist": True,
        })

        logger.info(f"User registered: {nick} (hid {user['hid']})")

    return user


async def touch_last_login(user_id: ObjectId, ip: str, when: Optional[datetime] = None):
    users = mongo.get_users_collection()
    await users.update_one(
        {"_id": user_id},
        {"$set": {"last_login_ts": when or utcnow(), "last_login_ip": ip}}
    )
