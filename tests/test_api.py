import httpx
import pytest

from app.core.config import settings
from app.db import mongo
from app.main import app
from utils import constants

PREFIX = settings.API_PREFIX


@pytest.fixture
async def api(groups):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


async def _login(api, nick):
    response = await api.post(f"{PREFIX}/auth/login", json={"email_or_nick": nick, "pass": "secret123"})
    assert response.status_code == 200, response.text
    api.cookies.clear()
    return {"X-Session-Token": response.json()["token"]}


@pytest.fixture
async def alice(api, make_user):
    user = await make_user("alice")
    return user, await _login(api, "alice")


@pytest.fixture
async def bob(api, make_user):
    user = await make_user("bob")
    return user, await _login(api, "bob")


async def test_register_then_login_sets_cookie(api):
    response = await api.post(f"{PREFIX}/auth/register", json={
        "email": "carol@example.com", "nick": "carol", "pass": "secret123",
    })
    assert response.status_code == 200
    assert "providers" not in response.json()["user"]

    response = await api.post(f"{PREFIX}/auth/login", json={"email_or_nick": "carol", "pass": "secret123"})
    assert response.status_code == 200
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == response.json()["token"]

    # logged in users cannot log in again
    response = await api.post(f"{PREFIX}/auth/login", json={"email_or_nick": "carol", "pass": "secret123"})
    assert response.status_code == 406
    assert response.json()["error"] == constants.ALREADY_LOGGED_IN
    assert response.json()["redirect_url"] == "/"


async def test_failed_login_body(api):
    response = await api.post(f"{PREFIX}/auth/login", json={"email_or_nick": "ghost", "pass": "secret123"})

    body = response.json()
    assert response.status_code == 406
    assert body["code"] == "CLIENT_ERROR"
    assert body["captcha"] is False
    assert body["fields"] == ["email_or_nick", "pass"]


async def test_user_profile_hides_name_from_guests(api, alice):
    user, headers = alice

    guest = await api.get(f"{PREFIX}/users/{user['hid']}")
    member = await api.get(f"{PREFIX}/users/{user['hid']}", headers=headers)

    assert "name" not in guest.json()["user"]
    assert member.json()["user"]["name"] == "alice"
    assert (await api.get(f"{PREFIX}/users/999")).status_code == 404


async def test_albums_and_upload_flow(api, alice, image_bytes):
    user, headers = alice
    hid = user["hid"]

    response = await api.post(f"{PREFIX}/users/{hid}/albums", json={"title": "Holidays"}, headers=headers)
    assert response.status_code == 200
    album_id = response.json()["album"]["_id"]

    response = await api.post(
        f"{PREFIX}/media/upload",
        params={"album_id": album_id},
        files={"file": ("beach.jpg", image_bytes(800, 600), "image/jpeg")},
        data={"description": "Sea"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    media = response.json()["media"]
    assert media["album_id"] == album_id

    page = (await api.get(f"{PREFIX}/users/{hid}/album/{album_id}")).json()
    assert page["album"]["title"] == "Holidays"
    assert [m["_id"] for m in page["medias"]] == [media["_id"]]
    assert page["breadcrumbs"][0]["url"] == f"/users/{hid}"

    albums = (await api.get(f"{PREFIX}/users/{hid}/albums")).json()["albums"]
    assert albums[0]["count"] == 1

    preview = await api.get(f"{PREFIX}/files/{media['file_id']}", params={"size": "sm"})
    assert preview.status_code == 200
    assert preview.headers["content-type"] == "image/jpeg"

    response = await api.delete(f"{PREFIX}/media/{media['_id']}", headers=headers)
    assert response.status_code == 200
    assert (await api.get(f"{PREFIX}/media/{media['_id']}")).status_code == 404


async def test_upload_requires_login(api, image_bytes):
    response = await api.post(
        f"{PREFIX}/media/upload",
        files={"file": ("beach.jpg", image_bytes(), "image/jpeg")},
    )
    assert response.status_code == 401


async def test_upload_rejected_extension(api, alice):
    _, headers = alice
    response = await api.post(
        f"{PREFIX}/media/upload",
        files={"file": ("virus.exe", b"MZ", "application/octet-stream")},
        headers=headers,
    )
    assert response.status_code == 406
    assert response.json()["error"] == constants.ERR_INVALID_EXT.format(file_name="virus.exe")


async def test_albums_only_for_yourself(api, alice, bob):
    _, headers = alice
    bob_user, _ = bob

    response = await api.post(f"{PREFIX}/users/{bob_user['hid']}/albums", json={"title": "Mine"}, headers=headers)
    assert response.status_code == 403


async def test_banned_users_cannot_create_albums(api, alice, groups):
    user, headers = alice
    await mongo.get_users_collection().update_one(
        {"_id": user["_id"]}, {"$set": {"usergroups": [groups["banned"]["_id"]]}}
    )

    response = await api.post(f"{PREFIX}/users/{user['hid']}/albums", json={"title": "Nope"}, headers=headers)
    assert response.status_code == 403


async def test_dialogs_flow(api, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob

    response = await api.post(f"{PREFIX}/dialogs", json={"to": "bob", "text": "Hi Bob"}, headers=alice_headers)
    assert response.status_code == 200
    message_id = response.json()["message"]["_id"]
    dialog_id = response.json()["dialog"]["_id"]

    dialogs = (await api.get(f"{PREFIX}/dialogs", headers=bob_headers)).json()["dialogs"]
    assert dialogs[0]["opponent"]["nick"] == "alice"

    messages = (await api.get(f"{PREFIX}/dialogs/{dialog_id}", headers=alice_headers)).json()["messages"]
    assert [m["md"] for m in messages] == ["Hi Bob"]

    # guests and other users get 404
    assert (await api.post(f"{PREFIX}/dialogs/messages/{message_id}/destroy")).status_code == 404
    response = await api.post(f"{PREFIX}/dialogs/messages/{message_id}/destroy", headers=bob_headers)
    assert response.status_code == 404

    response = await api.post(f"{PREFIX}/dialogs/messages/{message_id}/destroy", headers=alice_headers)
    assert response.status_code == 200
    assert response.json() == {"message_count": 0}


async def test_send_message_to_unknown_user(api, alice):
    _, headers = alice
    response = await api.post(f"{PREFIX}/dialogs", json={"to": "ghost", "text": "hi"}, headers=headers)

    assert response.status_code == 406
    assert response.json()["error"] == constants.DIALOG_UNKNOWN_RECIPIENT


async def test_admin_usergroups(api, alice, groups):
    user, headers = alice

    assert (await api.get(f"{PREFIX}/admin/usergroups/new")).status_code == 401
    assert (await api.get(f"{PREFIX}/admin/usergroups/new", headers=headers)).status_code == 403

    await mongo.get_users_collection().update_one(
        {"_id": user["_id"]}, {"$push": {"usergroups": groups["administrators"]["_id"]}}
    )

    form = await api.get(f"{PREFIX}/admin/usergroups/new", headers=headers)
    assert form.status_code == 200
    assert "media" in form.json()["setting_schemas"]

    response = await api.post(f"{PREFIX}/admin/usergroups", json={
        "short_name": "moderators",
        "parent_group": str(groups["members"]["_id"]),
        "settings": {"points_to_ban": 5},
    }, headers=headers)
    assert response.status_code == 200
    group_id = response.json()["usergroup"]["_id"]

    shown = (await api.get(f"{PREFIX}/admin/usergroups/{group_id}", headers=headers)).json()
    assert shown["usergroup"]["short_name"] == "moderators"

    response = await api.put(f"{PREFIX}/admin/usergroups/{group_id}", json={"short_name": "mods"}, headers=headers)
    assert response.json()["usergroup"]["short_name"] == "mods"


async def test_uploader_config(api):
    config = (await api.get(f"{PREFIX}/uploader/config")).json()

    assert "jpg" in config["extensions"]
    assert config["types"]["jpg"]["resize"]["orig"]["jpeg_quality"] == 75
    assert config["types"]["gif"]["resize"]["orig"]["skip_size"] == 2000000


async def test_forwarded_header_does_not_reset_login_limit(api, make_user):
    await make_user("alice")

    errors = []
    for i in range(settings.LOGIN_IP_MAX_ATTEMPTS + 2):
        response = await api.post(
            f"{PREFIX}/auth/login",
            json={"email_or_nick": "alice", "pass": "wrong-pass1"},
            headers={"X-Forwarded-For": f"10.0.0.{i}"},
        )
        assert response.status_code == 406
        errors.append(response.json()["error"])

    assert errors[:settings.LOGIN_IP_MAX_ATTEMPTS] == [constants.LOGIN_FAILED] * settings.LOGIN_IP_MAX_ATTEMPTS
    assert errors[-1] == constants.TOO_MANY_ATTEMPTS


async def test_upload_too_big_is_rejected_before_storing(api, alice, monkeypatch, file_store):
    _, headers = alice
    monkeypatch.setitem(settings.UPLOADS, "max_size", 1536)

    response = await api.post(
        f"{PREFIX}/media/upload",
        files={"file": ("notes.txt", b"x" * 5000, "text/plain")},
        headers=headers,
    )

    assert response.status_code == 406
    assert response.json()["error"] == constants.ERR_MAX_SIZE.format(file_name="notes.txt", max_size_kb=2)
    assert file_store.files == {}


async def test_login_returns_to_saved_redirect(api, make_user):
    await make_user("alice")

    response = await api.post(f"{PREFIX}/auth/redirect", json={"url": "/users/1/album"})
    redirect_id = response.json()["redirect_id"]

    response = await api.post(f"{PREFIX}/auth/login", json={
        "email_or_nick": "alice", "pass": "secret123", "redirect_id": redirect_id,
    })
    assert response.json()["redirect_url"] == "/users/1/album"


@pytest.mark.parametrize("url", ["https://evil.example/", "//evil.example/", ""])
async def test_redirect_must_be_local(api, url):
    response = await api.post(f"{PREFIX}/auth/redirect", json={"url": url})

    assert response.status_code == 406
    assert response.json()["fields"] == ["url"]
