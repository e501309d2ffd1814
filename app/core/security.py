"""
app/core/security.py

Purpose: Password hashing and token helpers

- Password hashing via passlib
- Password strength rules
- Random secrets for sessions and reset tokens
"""

import re
import secrets
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# At least one letter and one digit
_PASSWORD_RE = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d).+$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    return pwd_context.verify(password, hashed)


def validate_password(password: str) -> bool:
    """
    Checks password strength.

    Args:
        password: Plain password

    Returns:
        True if the password is long enough and mixes letters with digits
    """
    if not password or len(password) < settings.PASSWORD_MIN_LENGTH:
        return False
    return bool(_PASSWORD_RE.match(password))


def generate_secret(nbytes: int = 32) -> str:
    """Random URL-safe string for session tokens and reset keys."""
    return secrets.token_urlsafe(nbytes)
