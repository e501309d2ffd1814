"""
app/services/auth_service.py

Purpose: Authentication flows

- Plain (email or nick + password) login with rate limits and captcha
- Password reset tokens and password change
- Logout
"""

from typing import Optional, Dict, Any

from app.db import mongo
from app.core.config import settings
from app.core.exceptions import ClientError
from app.core.logging import get_logger, LogContext
from app.core.security import generate_secret, hash_password, validate_password, verify_password
from app.services import rate_limit_service, recaptcha_service, session_service, user_service
from utils import constants
from utils.time_utils import utcnow, expires_in, is_expired

logger = get_logger(__name__)

LOGIN_FIELDS = ["email_or_nick", "pass"]
CAPTCHA_FIELD = "recaptcha_response_field"


def _check_pass(authlink: Dict[str, Any], password: str) -> bool:
    for provider in authlink.get("providers", []):
        if provider.get("type") == "plain" and verify_password(password, provider.get("pass")):
            return True
    return False


async def login(user: Dict[str, Any], ip: str, redirect_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Opens a session for an authenticated user.

    Returns:
        {"token", "user", "redirect_url"}
    """
    token = await session_service.create_session(user["_id"], ip)
    await user_service.touch_last_login(user["_id"], ip)
    redirect_url = await session_service.resolve_redirect(redirect_id)

    return {"token": token, "user": user, "redirect_url": redirect_url}


async def login_plain(
    email_or_nick: str,
    password: str,
    ip: str,
    recaptcha_challenge: str = "",
    recaptcha_response: str = "",
    redirect_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Logs in with email (or nick) and password.

    Flow:
    1. Reject empty credentials
    2. Over the site-wide limit, require a valid captcha
    3. Over the per-IP limit, reject
    4. Find the auth link by email, then by nick, and check the password

    Every failure after step 1 counts towards both login limits.

    Returns:
        Result of `login`

    Raises:
        ClientError: With `captcha` telling the form whether to show the captcha
    """
    with LogContext(ip=ip):
        if not email_or_nick or not password:
            raise ClientError(constants.LOGIN_FAILED, fields=LOGIN_FIELDS, captcha=False)

        captcha_required = await rate_limit_service.check("login_total")

        if captcha_required:
            if not recaptcha_response:
                await rate_limit_service.touch_login_limits(ip)
                raise ClientError(constants.MISSED_CAPTCHA_SOLUTION, fields=[CAPTCHA_FIELD], captcha=True)

            valid = await recaptcha_service.verify(
                settings.RECAPTCHA_PRIVATE_KEY, ip, recaptcha_challenge, recaptcha_response
            )
            if not valid:
                await rate_limit_service.touch_login_limits(ip)
                raise ClientError(constants.WRONG_CAPTCHA_SOLUTION, fields=[CAPTCHA_FIELD], captcha=True)

        if await rate_limit_service.check("login_ip", ip):
            await rate_limit_service.touch_login_limits(ip)
            logger.warning("⚠️ Login blocked by per-IP limit")
            raise ClientError(constants.TOO_MANY_ATTEMPTS, fields=[CAPTCHA_FIELD], captcha=captcha_required)

        user, authlink = await user_service.find_by_email_or_nick(email_or_nick)

        if not user or not authlink or not _check_pass(authlink, password):
            await rate_limit_service.touch_login_limits(ip)
            logger.info(f"Login failed for '{email_or_nick}'")
            raise ClientError(constants.LOGIN_FAILED, fields=LOGIN_FIELDS, captcha=captcha_required)

        logger.info(f"✅ Login: {user['nick']}", extra={"user_id": user["_id"]})
        return await login(user, ip, redirect_id)


async def logout(token: Optional[str]) -> bool:
    return await session_service.delete_session(token)


async def request_password_reset(email: str) -> Dict[str, Any]:
    """
    Creates a password reset token for a plain auth link.

    Email delivery is out of scope; the reset link is logged.

    Returns:
        Token document

    Raises:
        ClientError: If no account uses this email
    """
    authlink = await mongo.get_auth_links_collection().find_one(
        {"email": (email or "").strip(), "type": "plain", "exist": True}
    )
    provider = None
    if authlink:
        provider = next((p for p in authlink.get("providers", []) if p.get("type") == "plain"), None)

    if not provider:
        raise ClientError(constants.EMAIL_UNKNOWN, fields=["email"])

    token = {
        "secret_key": generate_secret(),
        "authlink_id": authlink["_id"],
        "authprovider_id": provider["_id"],
        "created_at": utcnow(),
        "expires_at": expires_in(hours=settings.RESET_PASSWORD_TOKEN_TTL_HOURS),
    }
    result = await mongo.get_reset_tokens_collection().insert_one(token)
    token["_id"] = result.inserted_id

    with LogContext(user_id=authlink["user_id"]):
        logger.info(f"Password reset link: {settings.APP_URL}/auth/reset_password/{token['secret_key']}")

    return token


async def change_password(secret_key: str, new_password: str, ip: str) -> Dict[str, Any]:
    """
    Sets a new password using a reset token, then logs the user in.

    Raises:
        ClientError: `bad_password` for a weak password,
            EXPIRED_TOKEN for a missing/expired token,
            BROKEN_TOKEN when the auth link or provider is gone
    """
    if not validate_password(new_password):
        raise ClientError(constants.BAD_PASSWORD, fields=["password"], bad_password=True)

    tokens = mongo.get_reset_tokens_collection()
    token = await tokens.find_one({"secret_key": secret_key}) if secret_key else None

    if not token or is_expired(token.get("expires_at")):
        raise ClientError(constants.EXPIRED_TOKEN, bad_password=False)

    auth_links = mongo.get_auth_links_collection()
    authlink = await auth_links.find_one({"_id": token["authlink_id"], "exist": True})
    if not authlink:
        raise ClientError(constants.BROKEN_TOKEN, bad_password=False)

    providers = authlink.get("providers", [])
    provider = next((p for p in providers if p.get("_id") == token["authprovider_id"]), None)
    if not provider:
        raise ClientError(constants.BROKEN_TOKEN, bad_password=False)

    provider["pass"] = hash_password(new_password)

    # Every reset token of this provider is spent now
    await tokens.delete_many({"authprovider_id": provider["_id"]})
    await auth_links.update_one({"_id": authlink["_id"]}, {"$set": {"providers": providers}})

    user = await user_service.get_user_by_id(authlink["user_id"])
    if not user or not user.get("exists", False):
        raise ClientError(constants.BROKEN_TOKEN, bad_password=False)

    with LogContext(user_id=user["_id"], ip=ip):
        logger.info("🔑 Password changed")

    return await login(user, ip)
