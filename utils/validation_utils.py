"""
utils/validation_utils.py

Purpose: Input validation

- Nick and email format checks
- ObjectId parsing for route and body params
- File extension helpers
- Input sanitization
"""

import re
import html
from typing import Optional, Any

from bson import ObjectId
from bson.errors import InvalidId


NICK_PATTERN = re.compile(r"^[a-zA-Z0-9][-_.a-zA-Z0-9]{1,31}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_nick(nick: str) -> bool:
    """
    Validates nick format.

    Rules: 2-32 chars, latin letters, digits, '-', '_' and '.',
    must start with a letter or digit.

    Args:
        nick: Nick to validate

    Returns:
        True if valid
    """
    if not nick:
        return False
    return bool(NICK_PATTERN.match(nick))


def validate_email(email: str) -> bool:
    """
    Loose email format check (the mailbox is verified elsewhere).
    """
    if not email or len(email) > 254:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """
    Converts a string (or ObjectId) into an ObjectId.

    Args:
        value: Candidate id

    Returns:
        ObjectId, or None if the value is not a valid id
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def get_extension(file_name: str) -> str:
    """
    Lowercased extension without the dot ('' when there is none).
    """
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def sanitize_text(text: str, max_length: int = 10000) -> str:
    """
    Strips surrounding whitespace and truncates overly long input.
    """
    if not text:
        return ""
    return text.strip()[:max_length]


def escape_html(text: str) -> str:
    """
    HTML-escaped copy of user text, stored next to the markdown source.
    """
    return html.escape(text or "").replace("\n", "<br>")
