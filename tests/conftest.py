"""
Shared test fixtures for the relay test suite.

Provides: in-memory store, registry and connection manager, a fake WebSocket
that records frames, and a FastAPI TestClient wired to fresh app state.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chatpulse.api import websocket as websocket_module
from chatpulse.api.routes import health, metrics, rooms, root
from chatpulse.core import state
from chatpulse.models.models import ChatGroup, User
from chatpulse.services.connection_manager import ConnectionManager
from chatpulse.services.message_store import InMemoryMessageStore
from chatpulse.services.room_registry import RoomRegistry

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeWebSocket:
    """Stand-in for fastapi.WebSocket that records every JSON frame sent."""

    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.closed = False
        self.fail = fail
        self.sent = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def events(self, name: str) -> list:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


class StalledWebSocket(FakeWebSocket):
    """Socket whose peer stopped reading: every send blocks forever."""

    async def send_json(self, payload: dict) -> None:
        await asyncio.Event().wait()


class SteppingClock:
    """Clock advancing one millisecond per call, so stored timestamps are distinct."""

    def __init__(self, start: datetime = NOW) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(milliseconds=1)
        return self.current


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore(clock=SteppingClock())


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def manager(registry: RoomRegistry) -> ConnectionManager:
    return ConnectionManager(registry)


@pytest.fixture
def seeded_store(store: InMemoryMessageStore) -> InMemoryMessageStore:
    """Store with user a@x.com (Alice) and room r1 titled "General"."""
    # Seeded synchronously so no event loop is touched outside pytest-asyncio
    store.users["a@x.com"] = User(id="user-alice", email="a@x.com", name="Alice")
    store.groups["r1"] = ChatGroup(id="r1", title="General", updated_at=NOW)
    return store


@pytest.fixture
def app_state(monkeypatch, seeded_store: InMemoryMessageStore):
    """Point chatpulse.core.state at fresh singletons; restored after the test."""
    room_registry = RoomRegistry()
    monkeypatch.setattr(state, "room_registry", room_registry)
    monkeypatch.setattr(state, "connection_manager", ConnectionManager(room_registry))
    monkeypatch.setattr(state, "message_store", None)
    monkeypatch.setattr(state, "history_service", None)
    monkeypatch.setattr(state, "message_relay", None)
    state.init_services(seeded_store)
    return state


@pytest.fixture
def app(app_state) -> FastAPI:
    """FastAPI test application with the relay routers and no startup hooks."""
    app = FastAPI()
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(rooms.router)
    app.include_router(websocket_module.router)
    return app


@pytest.fixture
def client(app: FastAPI):
    # Entering the client shares one event loop across all websocket sessions
    with TestClient(app) as client:
        yield client
