"""
app/client/api.py

Purpose: Python client for the forum API

- JSON RPC style helper over httpx
- Client errors come back with the fields to highlight
- Registration helpers (debounced nick check, register)
"""

import asyncio
from typing import Optional, Dict, Any, Callable, List

import httpx

from app.core.logging import get_logger

logger = get_logger(__name__)

SESSION_HEADER = "X-Session-Token"
NICK_CHECK_DELAY = 0.3


class RpcError(Exception):
    """
    Error response from the API.

    `fields` and `data` are only set for client errors (rejected input).
    """

    def __init__(self, status_code: int, code: str, message: str,
                 fields: Optional[List[str]] = None, data: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.fields = fields or []
        self.data = data or {}
        super().__init__(f"{code}: {message}")

    @property
    def is_client_error(self) -> bool:
        return self.code == "CLIENT_ERROR"


class ForumClient:
    """
    Thin async client around the REST API.

    Usage:
        async with ForumClient("http://localhost:8000/api/v1") as client:
            await client.login("user@example.com", "secret12")
            medias = await client.rpc("GET", "/users/1/album")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._http = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)
        self._nick_check_task: Optional[asyncio.Task] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._nick_check_task and not self._nick_check_task.done():
            self._nick_check_task.cancel()
        await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        return {SESSION_HEADER: self.token} if self.token else {}

    @staticmethod
    def _raise_for_error(response: httpx.Response):
        if response.status_code < 400:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            body = {}

        known = {"error", "code", "fields"}
        raise RpcError(
            status_code=response.status_code,
            code=body.get("code", "HTTP_ERROR"),
            message=body.get("error") or response.reason_phrase,
            fields=body.get("fields"),
            data={k: v for k, v in body.items() if k not in known},
        )

    async def rpc(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Calls an API endpoint.

        Args:
            method: HTTP method
            path: Path below the base url
            json: JSON body
            params: Query params
            **kwargs: Extra httpx request options (files, data...)

        Returns:
            Decoded JSON response

        Raises:
            RpcError: For any error response
            httpx.RequestError: Network failures
        """
        response = await self._http.request(
            method, path, json=json, params=params, headers=self._headers(), **kwargs
        )
        self._raise_for_error(response)
        return response.json() if response.content else {}

    async def login(self, email_or_nick: str, password: str, **captcha) -> Dict[str, Any]:
        result = await self.rpc("POST", "/auth/login", json={
            "email_or_nick": email_or_nick,
            "pass": password,
            **captcha,
        })
        self.token = result["token"]
        return result

    async def logout(self):
        await self.rpc("POST", "/auth/logout")
        self.token = None

    async def check_nick(self, nick: str) -> Optional[str]:
        """
        Checks a nick.

        Returns:
            Error message for the nick field, or None if the nick is free
        """
        try:
            await self.rpc("POST", "/auth/register/check_nick", json={"nick": nick})
        except RpcError as e:
            if not e.is_client_error:
                raise
            return (e.data.get("details") or {}).get("nick") or e.message
        return None

    def check_nick_debounced(self, nick: str, callback: Callable[[str, Optional[str]], Any],
                             delay: float = NICK_CHECK_DELAY) -> asyncio.Task:
        """
        Schedules a nick check after `delay`; a newer call replaces a pending one.

        `callback(nick, error)` receives the result of the last check only.
        """
        if self._nick_check_task and not self._nick_check_task.done():
            self._nick_check_task.cancel()

        async def run():
            await asyncio.sleep(delay)
            error = await self.check_nick(nick)
            result = callback(nick, error)
            if asyncio.iscoroutine(result):
                await result

        self._nick_check_task = asyncio.create_task(run())
        return self._nick_check_task

    async def register(self, email: str, nick: str, password: str) -> Dict[str, Any]:
        """
        Registers an account.

        Raises:
            RpcError: Client error with per-field messages in `data["details"]`
        """
        result = await self.rpc("POST", "/auth/register", json={"email": email, "nick": nick, "pass": password})
        return result["user"]
