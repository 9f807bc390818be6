"""Tests for validating, persisting and broadcasting sent messages."""

import asyncio

import pytest

from chatpulse.core.errors import StoreWriteFailed, UnknownSender
from chatpulse.models.models import SendMessageRequest
from chatpulse.services.connection_manager import ConnectionManager
from chatpulse.services.history_service import HistoryService
from chatpulse.services.message_relay import MessageRelay
from conftest import FakeWebSocket, StalledWebSocket


def make_request(**overrides) -> SendMessageRequest:
    data = {"sender": "Alice", "message": "hi", "room": "r1", "user": {"email": "a@x.com"}}
    data.update(overrides)
    return SendMessageRequest.model_validate(data)


@pytest.fixture
def seeded_relay(seeded_store, manager: ConnectionManager) -> MessageRelay:
    return MessageRelay(seeded_store, manager)


@pytest.mark.asyncio
async def test_send_broadcasts_to_every_member_including_sender(seeded_relay, manager):
    alice, bob, outsider = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    await manager.connect(alice, "r1")
    await manager.connect(bob, "r1")
    await manager.connect(outsider)

    wire = await seeded_relay.send(make_request())

    for ws in (alice, bob):
        [payload] = ws.events("new_message")
        assert payload["room"] == "r1"
        assert payload["message"] == "hi"
        assert payload["id"] == wire.id
        assert payload["user"] == {"email": "a@x.com"}
    assert outsider.sent == []
    assert seeded_relay.message_counter == 1


@pytest.mark.asyncio
async def test_unknown_sender_is_rejected_without_side_effects(seeded_relay, seeded_store, manager):
    member = FakeWebSocket()
    await manager.connect(member, "r1")

    with pytest.raises(UnknownSender, match="User with email nobody@x.com not found"):
        await seeded_relay.send(make_request(user={"email": "nobody@x.com"}))

    assert member.sent == []
    assert await seeded_store.list_messages("r1") == []
    assert seeded_relay.message_counter == 0


@pytest.mark.asyncio
async def test_missing_email_falls_back_to_placeholder(seeded_relay):
    with pytest.raises(UnknownSender, match="unknown@example.com"):
        await seeded_relay.send(make_request(user={"email": ""}))


@pytest.mark.asyncio
async def test_store_failure_reports_write_failed_and_skips_broadcast(seeded_relay, seeded_store, manager, monkeypatch):
    member = FakeWebSocket()
    await manager.connect(member, "r1")

    async def broken_create(*args, **kwargs):
        raise ConnectionError("store unreachable")

    monkeypatch.setattr(seeded_store, "create_message", broken_create)

    with pytest.raises(StoreWriteFailed, match="store unreachable"):
        await seeded_relay.send(make_request())

    assert member.sent == []


@pytest.mark.asyncio
async def test_send_to_unknown_room_fails_write(seeded_relay):
    with pytest.raises(StoreWriteFailed, match="Chat group ghost not found"):
        await seeded_relay.send(make_request(room="ghost"))


@pytest.mark.asyncio
async def test_sent_message_is_last_in_history(seeded_relay, seeded_store):
    await seeded_relay.send(make_request(message="first"))
    wire = await seeded_relay.send(make_request(message="second", user={"email": "a@x.com", "avatar": "https://img/a.png"}))

    history = await HistoryService(seeded_store).get_history("r1")

    assert [m.message for m in history] == ["first", "second"]
    assert history[-1] == wire
    assert history[-1].to_wire()["senderAvatar"] == "https://img/a.png"


@pytest.mark.asyncio
async def test_send_still_broadcasts_when_sender_socket_is_gone(seeded_relay, manager):
    sender = FakeWebSocket(fail=True)
    listener = FakeWebSocket()
    sender_session = await manager.connect(sender, "r1")
    await manager.connect(listener, "r1")

    await seeded_relay.send(make_request())

    assert len(listener.events("new_message")) == 1
    assert sender_session.id not in manager.sessions


@pytest.mark.asyncio
async def test_client_created_at_is_ignored(seeded_relay, seeded_store):
    wire = await seeded_relay.send(make_request(createdAt="1999-01-01T00:00:00.000Z"))

    [record] = await seeded_store.list_messages("r1")
    assert record.created_at.year == 2024
    assert wire.created_at.startswith("2024-")


@pytest.mark.asyncio
async def test_stalled_member_does_not_block_send(seeded_store, registry):
    manager = ConnectionManager(registry, send_timeout=0.05)
    relay = MessageRelay(seeded_store, manager)
    healthy, stalled = FakeWebSocket(), StalledWebSocket()
    await manager.connect(healthy, "r1")
    stalled_session = await manager.connect(stalled, "r1")

    await asyncio.wait_for(relay.send(make_request(message="first")), timeout=1)

    assert [m["message"] for m in healthy.events("new_message")] == ["first"]
    assert stalled_session.id not in manager.sessions
    assert stalled_session.id not in await registry.members_of("r1")
    assert stalled.closed

    # The next sender no longer waits on the dropped member at all
    await asyncio.wait_for(relay.send(make_request(message="second")), timeout=1)
    assert [m["message"] for m in healthy.events("new_message")] == ["first", "second"]
