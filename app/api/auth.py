"""
app/api/auth.py

Purpose: Authentication endpoints

- Plain login / logout
- Registration and nick availability check
- Password reset request and password change
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import get_client_ip, get_session_token, require_guest
from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.auth import (
    ChangePasswordRequest,
    CheckNickRequest,
    CreateRedirectRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.services import auth_service, session_service, user_service
from utils.serialization import to_public

logger = get_logger(__name__)
router = APIRouter(prefix="/auth")


def _login_response(response: Response, result: Dict[str, Any]) -> LoginResponse:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        result["token"],
        max_age=settings.SESSION_TTL_HOURS * 3600,
        httponly=True,
        samesite="lax",
    )
    return LoginResponse(
        token=result["token"],
        user_hid=result["user"]["hid"],
        redirect_url=result["redirect_url"],
    )


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(require_guest)])
async def login(body: LoginRequest, request: Request, response: Response) -> LoginResponse:
    """
    Plain login by email or nick.

    Failures come back as client errors with `captcha` telling the form
    whether to show the captcha.
    """
    result = await auth_service.login_plain(
        body.email_or_nick,
        body.password,
        get_client_ip(request),
        recaptcha_challenge=body.recaptcha_challenge_field,
        recaptcha_response=body.recaptcha_response_field,
        redirect_id=body.redirect_id,
    )
    return _login_response(response, result)


@router.post("/redirect", dependencies=[Depends(require_guest)])
async def create_redirect(body: CreateRedirectRequest):
    """Remembers where to go after login; pass `redirect_id` to the login form."""
    redirect_id = await session_service.create_redirect(body.url)
    return {"redirect_id": str(redirect_id)}


@router.post("/logout")
async def logout(request: Request, response: Response):
    removed = await auth_service.logout(get_session_token(request))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": removed}


@router.post("/register", dependencies=[Depends(require_guest)])
async def register(body: RegisterRequest, request: Request):
    user = await user_service.register(body.email, body.nick, body.password, get_client_ip(request))
    return {"user": to_public(user)}


@router.post("/register/check_nick")
async def check_nick(body: CheckNickRequest):
    await user_service.check_nick(body.nick)
    return {"nick": body.nick, "available": True}


@router.post("/reset_password", dependencies=[Depends(require_guest)])
async def request_password_reset(body: ResetPasswordRequest):
    await auth_service.request_password_reset(body.email)
    return {"success": True}


@router.post("/reset_password/change", response_model=LoginResponse, dependencies=[Depends(require_guest)])
async def change_password(body: ChangePasswordRequest, request: Request, response: Response) -> LoginResponse:
    result = await auth_service.change_password(body.secret_key, body.password, get_client_ip(request))
    return _login_response(response, result)
