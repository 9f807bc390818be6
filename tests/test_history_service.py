"""Tests for room history and room title lookups."""

import pytest

from chatpulse.services.history_service import HistoryService


class BrokenStore:
    async def list_messages(self, room):
        raise ConnectionError("store unreachable")

    async def find_group(self, room):
        raise ConnectionError("store unreachable")


@pytest.mark.asyncio
async def test_history_is_oldest_first(seeded_store):
    for body in ("a", "b", "c"):
        await seeded_store.create_message("r1", "Alice", body, "user-alice", "a@x.com")

    history = await HistoryService(seeded_store).get_history("r1")

    assert [m.message for m in history] == ["a", "b", "c"]
    assert [m.created_at for m in history] == sorted(m.created_at for m in history)


@pytest.mark.asyncio
async def test_history_for_unknown_room_is_empty(seeded_store):
    assert await HistoryService(seeded_store).get_history("ghost") == []


@pytest.mark.asyncio
async def test_history_store_failure_degrades_to_empty():
    assert await HistoryService(BrokenStore()).get_history("r1") == []


@pytest.mark.asyncio
async def test_room_title(seeded_store):
    service = HistoryService(seeded_store)

    assert await service.get_room_title("r1") == "General"
    assert await service.get_room_title("ghost") == "Unknown Room"


@pytest.mark.asyncio
async def test_room_title_store_failure_degrades_to_unknown():
    assert await HistoryService(BrokenStore()).get_room_title("r1") == "Unknown Room"
