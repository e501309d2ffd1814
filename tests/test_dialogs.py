import pytest
from bson import ObjectId

from app.core.exceptions import ClientError, PermissionDeniedError, ResourceNotFoundError
from app.db import mongo
from app.services import dialog_service, infraction_service
from utils import constants
from utils.time_utils import utcnow


@pytest.fixture
async def pair(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    return alice, bob


async def test_send_message_creates_both_sides(pair):
    alice, bob = pair
    result = await dialog_service.send_message(alice, "bob", "Hello <b>Bob</b>")

    dialogs = await mongo.get_dialogs_collection().find().to_list(length=None)
    assert {(d["user"], d["to"]) for d in dialogs} == {(alice["_id"], bob["_id"]), (bob["_id"], alice["_id"])}

    message = result["message"]
    assert message["md"] == "Hello <b>Bob</b>"
    assert message["html"] == "Hello &lt;b&gt;Bob&lt;/b&gt;"
    assert result["dialog"]["user"] == alice["_id"]

    assert await mongo.get_dlg_messages_collection().count_documents({}) == 2


async def test_send_message_reuses_dialog(pair):
    alice, bob = pair
    first = await dialog_service.send_message(alice, "bob", "one")
    second = await dialog_service.send_message(alice, "bob", "two")

    assert first["dialog"]["_id"] == second["dialog"]["_id"]
    messages = await dialog_service.list_messages(alice, first["dialog"]["_id"])
    assert [m["md"] for m in messages["messages"]] == ["one", "two"]


@pytest.mark.parametrize("to, text, message", [
    ("alice", "hi", constants.DIALOG_TO_SELF),
    ("nobody", "hi", constants.DIALOG_UNKNOWN_RECIPIENT),
    ("bob", "   ", constants.DIALOG_EMPTY_MESSAGE),
])
async def test_send_message_rejected(pair, to, text, message):
    alice, _ = pair
    with pytest.raises(ClientError) as exc_info:
        await dialog_service.send_message(alice, to, text)
    assert exc_info.value.message == message


async def test_list_dialogs_with_opponent(pair):
    alice, bob = pair
    await dialog_service.send_message(alice, "bob", "hi")

    dialogs = await dialog_service.list_dialogs(bob)
    assert len(dialogs) == 1
    assert dialogs[0]["opponent"]["nick"] == "alice"
    assert dialogs[0]["cache"]["preview"] == "hi"


async def test_destroy_message_keeps_dialog_with_messages(pair):
    alice, _ = pair
    await dialog_service.send_message(alice, "bob", "one")
    second = await dialog_service.send_message(alice, "bob", "two")

    result = await dialog_service.destroy_message(alice, second["message"]["_id"])

    assert result == {"message_count": 1}
    message = await mongo.get_dlg_messages_collection().find_one({"_id": second["message"]["_id"]})
    assert message["exists"] is False
    dialog = await mongo.get_dialogs_collection().find_one({"_id": second["dialog"]["_id"]})
    assert dialog["exists"] is True
    assert dialog["cache"]["preview"] == "one"


async def test_destroy_last_message_hides_dialog(pair):
    alice, bob = pair
    sent = await dialog_service.send_message(alice, "bob", "only")

    result = await dialog_service.destroy_message(alice, str(sent["message"]["_id"]))

    assert result == {"message_count": 0}
    dialog = await mongo.get_dialogs_collection().find_one({"_id": sent["dialog"]["_id"]})
    assert dialog["exists"] is False

    # the other side keeps its copy
    assert len(await dialog_service.list_dialogs(bob)) == 1


async def test_destroy_message_of_foreign_dialog(pair, make_user):
    alice, _ = pair
    carol = await make_user("carol")
    sent = await dialog_service.send_message(alice, "bob", "private")

    with pytest.raises(ResourceNotFoundError):
        await dialog_service.destroy_message(carol, sent["message"]["_id"])


async def test_destroy_message_guest_and_unknown(pair):
    alice, _ = pair
    sent = await dialog_service.send_message(alice, "bob", "hi")

    with pytest.raises(ResourceNotFoundError):
        await dialog_service.destroy_message(None, sent["message"]["_id"])
    with pytest.raises(ResourceNotFoundError):
        await dialog_service.destroy_message(alice, ObjectId())
    with pytest.raises(ResourceNotFoundError):
        await dialog_service.destroy_message(alice, "not-an-id")


async def test_destroy_removed_message_is_404(pair):
    alice, _ = pair
    sent = await dialog_service.send_message(alice, "bob", "hi")
    await dialog_service.destroy_message(alice, sent["message"]["_id"])

    with pytest.raises(ResourceNotFoundError):
        await dialog_service.destroy_message(alice, sent["message"]["_id"])


async def test_list_messages_of_foreign_dialog(pair, make_user):
    alice, _ = pair
    carol = await make_user("carol")
    sent = await dialog_service.send_message(alice, "bob", "hi")

    with pytest.raises(ResourceNotFoundError):
        await dialog_service.list_messages(carol, sent["dialog"]["_id"])


# ============================================================
# INFRACTIONS
# ============================================================

async def _infraction_for(user, message_id, src_type=constants.CONTENT_TYPE_DIALOG_MESSAGE):
    infraction = {
        "from": ObjectId(),
        "for": user["_id"],
        "type": "spam",
        "reason": "Spam",
        "points": 1,
        "src": message_id,
        "src_type": src_type,
        "ts": utcnow(),
        "exists": True,
    }
    await mongo.get_infractions_collection().insert_one(infraction)
    return infraction


async def test_dialog_message_info(pair):
    alice, bob = pair
    sent = await dialog_service.send_message(alice, "bob", "buy now")
    bob_copy = await mongo.get_dlg_messages_collection().find_one(
        {"_id": {"$ne": sent["message"]["_id"]}}
    )
    infraction = await _infraction_for(alice, sent["message"]["_id"])

    info = await infraction_service.dialog_message_info([infraction], alice["_id"])

    message_id = str(sent["message"]["_id"])
    assert info == {
        message_id: {
            "title": "bob",
            "url": f"/dialogs/{sent['dialog']['_id']}#{message_id}",
            "text": "buy now",
        }
    }

    # messages from dialogs of other users are not described
    assert await infraction_service.dialog_message_info([infraction], bob["_id"]) == {}
    other = await _infraction_for(alice, bob_copy["_id"])
    assert await infraction_service.dialog_message_info([other], alice["_id"]) == {}


async def test_dialog_message_info_skips_other_sources(pair):
    alice, _ = pair
    infraction = await _infraction_for(alice, ObjectId(), src_type=constants.CONTENT_TYPE_MEDIA)
    assert await infraction_service.dialog_message_info([infraction], alice["_id"]) == {}


async def test_list_infractions_is_private(pair, make_user):
    alice, bob = pair
    sent = await dialog_service.send_message(alice, "bob", "buy now")
    await _infraction_for(alice, sent["message"]["_id"])

    result = await infraction_service.list_infractions(alice["hid"], alice)
    assert len(result["infractions"]) == 1
    assert str(sent["message"]["_id"]) in result["content_info"]

    with pytest.raises(PermissionDeniedError):
        await infraction_service.list_infractions(alice["hid"], bob)
