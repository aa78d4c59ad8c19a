"""Integration smoke tests for REST and WebSocket API (fake backend via dependency override)."""
from __future__ import annotations

import jwt
import pytest
from fastapi.testclient import TestClient

from arthive_chat.api.deps import get_directory, get_feed
from arthive_chat.app import create_app
from arthive_chat.config import settings
from tests.conftest import ALICE, BOB, CAROL, FakeDirectory, FakeFeed, make_message


def _make_token(sub: str = ALICE) -> str:
    return jwt.encode(
        {"sub": sub, "aud": settings.JWT_AUDIENCE, "role": "authenticated"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def _auth(sub: str = ALICE) -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(sub)}"}


@pytest.fixture
def backend():
    feed = FakeFeed()
    directory = FakeDirectory(feed=feed)
    directory.add_profile(ALICE, "alice")
    directory.add_profile(BOB, "bob")
    directory.add_profile(CAROL, None, "https://cdn.example/carol.png")
    return directory, feed


@pytest.fixture
def client(backend):
    directory, feed = backend
    app = create_app()
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_feed] = lambda: feed
    return TestClient(app, raise_server_exceptions=False)


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_directory_requires_token(client):
    resp = client.get("/api/v1/messages/directory")
    assert resp.status_code in (401, 403)


def test_directory_for_new_user_has_suggestions(client):
    resp = client.get("/api/v1/messages/directory", headers=_auth())

    assert resp.status_code == 200
    data = resp.json()
    assert data["conversations"] == []
    assert {p["id"] for p in data["suggestions"]} == {BOB, CAROL}
    carol = next(p for p in data["suggestions"] if p["id"] == CAROL)
    assert carol["display_name"] == settings.UNKNOWN_USER_NAME
    assert carol["avatar"] == "https://cdn.example/carol.png"


def test_start_conversation_then_directory_reconciles(client, backend):
    directory, _ = backend

    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"other_user_id": BOB},
    )
    assert resp.status_code == 200
    conversation_id = resp.json()["conversation_id"]
    directory.lagging.add(conversation_id)

    resp = client.get(
        "/api/v1/messages/directory",
        headers=_auth(),
        params={"conversation_id": conversation_id},
    )
    data = resp.json()
    assert [c["conversation_id"] for c in data["conversations"]] == [conversation_id]
    assert data["conversations"][0]["other_participant"]["username"] == "bob"
    assert data["suggestions"] == []


def test_start_conversation_with_self_is_422(client):
    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"other_user_id": ALICE},
    )
    assert resp.status_code == 422


def test_start_conversation_backend_failure_is_409(client, backend):
    directory, _ = backend
    directory.failing.add("get_or_create_conversation")

    resp = client.post(
        "/api/v1/messages/conversations",
        headers=_auth(),
        json={"other_user_id": BOB},
    )
    assert resp.status_code == 409


def test_directory_backend_failure_is_503(client, backend):
    directory, _ = backend
    directory.failing.add("list_participations")

    resp = client.get("/api/v1/messages/directory", headers=_auth())
    assert resp.status_code == 503


def test_list_messages_with_fallback_sender(client, backend):
    directory, _ = backend
    directory.add_conversation(42, ALICE, BOB)
    directory.messages.extend([make_message(2, sender_id="ghost"), make_message(1, sender_id=BOB)])

    resp = client.get("/api/v1/messages/conversations/42/messages", headers=_auth())

    assert resp.status_code == 200
    data = resp.json()
    assert [m["id"] for m in data] == [1, 2]
    assert data[0]["sender_name"] == "bob"
    assert data[1]["sender"] is None
    assert data[1]["sender_avatar"].endswith("seed=ghost")


def test_directory_entry_without_profile_has_fallbacks(client, backend):
    directory, _ = backend
    directory.add_conversation(1, ALICE, "ghost")
    directory.add_conversation(2, ALICE, BOB)

    resp = client.get("/api/v1/messages/directory", headers=_auth())

    assert resp.status_code == 200
    ghost, bob = resp.json()["conversations"]
    assert ghost["conversation_id"] == 1
    assert ghost["other_user_id"] == "ghost"
    assert ghost["other_participant"] is None
    assert ghost["display_name"] == settings.UNKNOWN_USER_NAME
    assert ghost["avatar"].endswith("seed=ghost")
    assert bob["other_user_id"] == BOB
    assert bob["display_name"] == "bob"


def test_list_messages_of_foreign_conversation_is_403(client, backend):
    directory, _ = backend
    directory.add_conversation(9, BOB, CAROL)

    resp = client.get("/api/v1/messages/conversations/9/messages", headers=_auth())
    assert resp.status_code == 403


def test_send_message_is_accepted(client, backend):
    directory, _ = backend
    directory.add_conversation(42, ALICE, BOB)

    resp = client.post(
        "/api/v1/messages/conversations/42/messages",
        headers=_auth(),
        json={"content": "Hello"},
    )

    assert resp.status_code == 202
    assert ("insert_message", (42, ALICE, "Hello")) in directory.calls


def test_send_blank_message_is_422(client, backend):
    directory, _ = backend
    directory.add_conversation(42, ALICE, BOB)

    resp = client.post(
        "/api/v1/messages/conversations/42/messages",
        headers=_auth(),
        json={"content": "   "},
    )

    assert resp.status_code == 422
    assert directory.calls == []


def test_room_messages(client, backend):
    directory, _ = backend

    resp = client.post("/api/v1/messages/room/messages", headers=_auth(), json={"content": "hi all"})
    assert resp.status_code == 202

    resp = client.get("/api/v1/messages/room/messages", headers=_auth(BOB))
    assert [m["content"] for m in resp.json()] == ["hi all"]


def test_ws_rejects_bad_token(client):
    with pytest.raises(Exception):
        with client.websocket_connect("/ws/messages?token=garbage") as ws:
            ws.receive_text()


def test_ws_snapshot_then_echo(client, backend):
    directory, _ = backend
    directory.add_conversation(42, ALICE, BOB)
    directory.messages.append(make_message(1, sender_id=BOB, content="hey"))

    with client.websocket_connect(f"/ws/messages?token={_make_token()}") as ws:
        ws.send_json({"type": "open", "data": {"conversation_id": 42}})
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert [m["content"] for m in snapshot["data"]["messages"]] == ["hey"]

        ws.send_json({"type": "message.send", "data": {"content": "Hello"}})
        created = ws.receive_json()
        assert created["type"] == "message.created"
        assert created["data"]["content"] == "Hello"
        assert created["data"]["sender_name"] == "alice"


def test_ws_switch_keeps_one_subscription(client, backend):
    directory, feed = backend
    directory.add_conversation(1, ALICE, BOB)
    directory.add_conversation(2, ALICE, CAROL)

    with client.websocket_connect(f"/ws/messages?token={_make_token()}") as ws:
        ws.send_json({"type": "open", "data": {"conversation_id": 1}})
        assert ws.receive_json()["data"]["conversation_id"] == 1
        ws.send_json({"type": "open", "data": {"conversation_id": 2}})
        assert ws.receive_json()["data"]["conversation_id"] == 2

        assert [s.filter for s in feed.active] == [{"conversation_id": 2}]


def test_ws_open_foreign_conversation_errors(client, backend):
    directory, feed = backend
    directory.add_conversation(9, BOB, CAROL)

    with client.websocket_connect(f"/ws/messages?token={_make_token()}") as ws:
        ws.send_json({"type": "open", "data": {"conversation_id": 9}})
        frame = ws.receive_json()

        assert frame["type"] == "error"
        assert frame["data"]["code"] == "ForbiddenError"
        assert feed.active == []
