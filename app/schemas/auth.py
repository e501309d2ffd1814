"""
app/schemas/auth.py

Pydantic models for login, registration and password reset endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional


class LoginRequest(BaseModel):
    """Plain login form."""

    email_or_nick: str = Field(default="", description="Email or nick")
    password: str = Field(default="", alias="pass", description="Password")
    recaptcha_challenge_field: str = Field(default="", description="Captcha challenge id")
    recaptcha_response_field: str = Field(default="", description="Captcha solution")
    redirect_id: Optional[str] = Field(default=None, description="Where to go after login")

    model_config = {"populate_by_name": True}

    @field_validator("email_or_nick")
    @classmethod
    def strip_login(cls, v: str) -> str:
        return v.strip()


class LoginResponse(BaseModel):
    """Successful login."""

    token: str = Field(..., description="Session token")
    user_hid: int = Field(..., description="Logged in user hid")
    redirect_url: str = Field(..., description="Where the client should go next")


class RegisterRequest(BaseModel):
    email: str = Field(..., description="Login email")
    nick: str = Field(..., description="Public nick")
    password: str = Field(..., alias="pass", description="Password")

    model_config = {"populate_by_name": True}


class CheckNickRequest(BaseModel):
    nick: str = Field(..., description="Nick to check")


class ResetPasswordRequest(BaseModel):
    email: str = Field(..., description="Email of the account")


class ChangePasswordRequest(BaseModel):
    """New password with the reset link secret."""

    secret_key: str = Field(..., description="Secret from the reset link")
    password: str = Field(..., description="New password")


class CreateRedirectRequest(BaseModel):
    url: str = Field(..., description="Local path to return to after login")
