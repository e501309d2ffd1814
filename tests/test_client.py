import asyncio

import httpx
import pytest

from app.client.api import ForumClient, RpcError
from app.main import app
from utils import constants

BASE_URL = "http://forum.test/api/v1"


@pytest.fixture
async def client(groups):
    async with ForumClient(BASE_URL, transport=httpx.ASGITransport(app=app)) as forum:
        yield forum


async def test_register_and_login(client):
    user = await client.register("alice@example.com", "alice", "secret123")
    assert user["nick"] == "alice"
    assert "pass" not in user

    result = await client.login("alice", "secret123")
    assert client.token == result["token"]

    await client.logout()
    assert client.token is None


async def test_register_errors_carry_fields(client):
    with pytest.raises(RpcError) as exc_info:
        await client.register("broken", "a", "short")

    error = exc_info.value
    assert error.status_code == 406
    assert error.is_client_error
    assert set(error.fields) == {"email", "nick", "pass"}
    assert error.data["details"]["pass"] == constants.BAD_PASSWORD


async def test_login_failure_reports_captcha_flag(client):
    with pytest.raises(RpcError) as exc_info:
        await client.login("nobody", "secret123")

    assert exc_info.value.message == constants.LOGIN_FAILED
    assert exc_info.value.data["captcha"] is False


async def test_check_nick(client):
    await client.register("alice@example.com", "alice", "secret123")

    assert await client.check_nick("bob") is None
    assert await client.check_nick("alice") == constants.NICK_BUSY


async def test_check_nick_debounced_reports_last_nick_only(client):
    await client.register("alice@example.com", "alice", "secret123")
    checked = []

    def callback(nick, error):
        checked.append((nick, error))

    client.check_nick_debounced("al", callback, delay=0.01)
    client.check_nick_debounced("ali", callback, delay=0.01)
    task = client.check_nick_debounced("alice", callback, delay=0.01)
    await task

    assert checked == [("alice", constants.NICK_BUSY)]


async def test_server_errors_are_not_client_errors():
    def handler(request):
        return httpx.Response(500, json={"error": "boom", "code": "INTERNAL_ERROR", "details": None})

    async with ForumClient(BASE_URL, transport=httpx.MockTransport(handler)) as forum:
        with pytest.raises(RpcError) as exc_info:
            await forum.rpc("GET", "/anything")

    assert exc_info.value.code == "INTERNAL_ERROR"
    assert not exc_info.value.is_client_error


async def test_session_token_header_is_sent():
    seen = []

    def handler(request):
        seen.append(request.headers.get("X-Session-Token"))
        return httpx.Response(200, json={"ok": True})

    async with ForumClient(BASE_URL, token="abc", transport=httpx.MockTransport(handler)) as forum:
        assert await forum.rpc("GET", "/ping") == {"ok": True}

    assert seen == ["abc"]


async def test_debounce_cancels_pending_check():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={"ok": True})

    async with ForumClient(BASE_URL, transport=httpx.MockTransport(handler)) as forum:
        first = forum.check_nick_debounced("a", lambda nick, error: None, delay=0.05)
        await forum.check_nick_debounced("ab", lambda nick, error: None, delay=0.01)
        await asyncio.sleep(0)

        assert first.cancelled()
    assert len(calls) == 1
