"""
app/services/rate_limit_service.py

Purpose: Fixed window rate limits stored in MongoDB

- One counter document per (limit, key, window)
- Old windows expire through a TTL index on `expires_at`
- Named limits: login_ip (per address) and login_total (whole site)
"""

from typing import Dict, Tuple

from pymongo.errors import DuplicateKeyError

from app.db import mongo
from app.core.config import settings
from app.core.logging import get_logger
from utils.time_utils import expires_in, window_bucket

logger = get_logger(__name__)


def get_limits() -> Dict[str, Tuple[int, int]]:
    """Named limits as {name: (max_attempts, window_seconds)}."""
    return {
        "login_ip": (settings.LOGIN_IP_MAX_ATTEMPTS, settings.LOGIN_IP_WINDOW_SECONDS),
        "login_total": (settings.LOGIN_TOTAL_MAX_ATTEMPTS, settings.LOGIN_TOTAL_WINDOW_SECONDS),
    }


def _counter_key(name: str, key: str) -> str:
    return f"{name}:{key}" if key else name


async def check(name: str, key: str = "") -> bool:
    """
    Checks whether a limit is exceeded in the current window.

    Args:
        name: Limit name (login_ip, login_total)
        key: Limited entity, e.g. client IP

    Returns:
        True if the limit is exceeded
    """
    max_attempts, window = get_limits()[name]
    counter = await mongo.get_rate_limits_collection().find_one({
        "key": _counter_key(name, key),
        "bucket": window_bucket(window),
    })
    return bool(counter) and counter.get("count", 0) >= max_attempts


async def update(name: str, key: str = ""):
    """
    Counts one attempt in the current window.
    """
    _, window = get_limits()[name]
    query = {"key": _counter_key(name, key), "bucket": window_bucket(window)}
    update_doc = {
        "$inc": {"count": 1},
        "$setOnInsert": {"expires_at": expires_in(seconds=window)},
    }
    rate_limits = mongo.get_rate_limits_collection()

    try:
        await rate_limits.update_one(query, update_doc, upsert=True)
    except DuplicateKeyError:
        # Concurrent upsert created the window first
        await rate_limits.update_one(query, {"$inc": {"count": 1}})

    logger.debug(f"Rate limit {query['key']} touched")


async def touch_login_limits(ip: str):
    """Counts a failed login for both login limits."""
    await update("login_ip", ip)
    await update("login_total")
