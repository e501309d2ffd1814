"""
app/services/recaptcha_service.py

Purpose: reCAPTCHA solution checks

- Posts the challenge/response pair to the verify endpoint
- Network and API failures count as a wrong solution
"""

from typing import Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


async def verify(
    private_key: Optional[str],
    ip: str,
    challenge: str,
    response: str,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """
    Verifies a captcha solution.

    Args:
        private_key: reCAPTCHA private key
        ip: Client IP
        challenge: Challenge id shown to the user
        response: User's solution
        client: Optional HTTP client (tests pass a mocked one)

    Returns:
        True if the solution is valid
    """
    if not private_key:
        logger.warning("⚠️ RECAPTCHA_PRIVATE_KEY is not set, rejecting captcha")
        return False

    data = {
        "privatekey": private_key,
        "remoteip": ip,
        "challenge": challenge or "",
        "response": response or "",
    }

    try:
        if client is not None:
            resp = await client.post(settings.RECAPTCHA_VERIFY_URL, data=data)
        else:
            async with httpx.AsyncClient(timeout=settings.RECAPTCHA_TIMEOUT) as http:
                resp = await http.post(settings.RECAPTCHA_VERIFY_URL, data=data)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"❌ reCAPTCHA verify request failed: {e}")
        return False

    # Answer is "true" or "false\n<error-code>"
    lines = resp.text.splitlines()
    valid = bool(lines) and lines[0].strip() == "true"
    if not valid and len(lines) > 1:
        logger.info(f"reCAPTCHA rejected: {lines[1].strip()}")
    return valid
