"""
app/api/deps.py

Purpose: Shared route dependencies

- Client IP and session token extraction
- Current user (optional, member-only, guest-only, admin-only)
"""

from typing import Optional, Dict, Any

from fastapi import Depends, Request

from app.core.config import settings
from app.core.exceptions import AuthenticationError, ClientError, PermissionDeniedError
from app.services import session_service, usergroup_service
from utils import constants

SESSION_HEADER = "X-Session-Token"


def get_client_ip(request: Request) -> str:
    # Forwarded headers are applied by uvicorn (proxy_headers, FORWARDED_ALLOW_IPS)
    return request.client.host if request.client else "unknown"


def get_session_token(request: Request) -> Optional[str]:
    return request.headers.get(SESSION_HEADER) or request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    """Logged in user, or None for guests."""
    return await session_service.get_session_user(get_session_token(request))


async def require_member(user: Optional[Dict[str, Any]] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user:
        raise AuthenticationError("Login required")
    return user


async def require_guest(user: Optional[Dict[str, Any]] = Depends(get_current_user)) -> None:
    if user:
        raise ClientError(constants.ALREADY_LOGGED_IN, redirect_url="/")


async def require_admin(user: Dict[str, Any] = Depends(require_member)) -> Dict[str, Any]:
    if not await usergroup_service.is_admin(user):
        raise PermissionDeniedError("Admin panel access denied")
    return user
