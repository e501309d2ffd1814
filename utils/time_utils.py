"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Naive UTC "now" (the shape pymongo hands back)
- Token and session expiry checks
- Fixed window bucketing for rate limits
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Current UTC time without tzinfo, millisecond precision like BSON dates.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def expires_in(seconds: int = 0, hours: int = 0) -> datetime:
    """
    Returns an expiry timestamp relative to now.
    """
    return utcnow() + timedelta(seconds=seconds, hours=hours)


def is_expired(expires_at: Optional[datetime]) -> bool:
    """
    Checks if an expiry timestamp has passed. Missing expiry counts as expired.
    """
    if not expires_at:
        return True
    return utcnow() >= expires_at


def window_bucket(window_seconds: int, now: Optional[datetime] = None) -> int:
    """
    Index of the fixed window `now` falls in.
    """
    now = now or utcnow()
    epoch = int(now.replace(tzinfo=timezone.utc).timestamp())
    return epoch // window_seconds
