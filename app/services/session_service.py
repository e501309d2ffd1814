"""
app/services/session_service.py

Purpose: Login session management

- Creates session tokens after a successful login
- Resolves a token to the logged in user
- Handles session expiry and logout
- Stores and resolves post-login redirect targets
"""

from typing import Optional, Dict, Any

from bson import ObjectId

from app.db.mongo import get_sessions_collection, get_redirects_collection, get_users_collection
from app.core.config import settings
from app.core.exceptions import ClientError
from app.core.logging import get_logger, LogContext
from app.core.security import generate_secret
from utils.time_utils import utcnow, expires_in, is_expired
from utils.validation_utils import parse_object_id
from utils import constants

logger = get_logger(__name__)


async def create_session(user_id: ObjectId, ip: str) -> str:
    """
    Opens a login session.

    Args:
        user_id: Logged in user
        ip: Client IP

    Returns:
        Session token
    """
    token = generate_secret()
    sessions = get_sessions_collection()

    await sessions.insert_one({
        "token": token,
        "user_id": user_id,
        "ip": ip,
        "created_at": utcnow(),
        "expires_at": expires_in(hours=settings.SESSION_TTL_HOURS),
    })

    with LogContext(user_id=user_id, ip=ip):
        logger.info("Session created")

    return token


async def get_session(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Returns the live session for a token, dropping it if expired.
    """
    if not token:
        return None

    sessions = get_sessions_collection()
    session = await sessions.find_one({"token": token})
    if not session:
        return None

    if is_expired(session.get("expires_at")):
        await sessions.delete_one({"_id": session["_id"]})
        logger.info(f"Session expired", extra={"user_id": session.get("user_id")})
        return None

    return session


async def get_session_user(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Returns the visible user behind a session token, or None for guests.
    """
    session = await get_session(token)
    if not session:
        return None
    return await get_users_collection().find_one({"_id": session["user_id"], "exists": True})


async def delete_session(token: Optional[str]) -> bool:
    """
    Ends a session.

    Returns:
        True if a session was removed
    """
    if not token:
        return False
    result = await get_sessions_collection().delete_one({"token": token})
    return result.deleted_count > 0


async def create_redirect(url: str) -> ObjectId:
    """
    Saves a URL to come back to after login.

    Returns:
        Redirect id passed to the login form

    Raises:
        ClientError: If the URL is not a local path
    """
    if not url or not url.startswith("/") or url.startswith("//"):
        raise ClientError(constants.REDIRECT_INVALID, fields=["url"])

    result = await get_redirects_collection().insert_one({"url": url, "created_at": utcnow()})
    return result.inserted_id


async def resolve_redirect(redirect_id: Optional[str], default: str = "/") -> str:
    """
    Resolves (and consumes) a login redirect.

    Args:
        redirect_id: Id from `create_redirect`
        default: URL used when the id is missing or unknown

    Returns:
        Target URL
    """
    oid = parse_object_id(redirect_id)
    if not oid:
        return default

    redirect = await get_redirects_collection().find_one_and_delete({"_id": oid})
    if not redirect:
        return default
    return redirect["url"]
