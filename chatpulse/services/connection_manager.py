# chatpulse/services/connection_manager.py

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, Optional

from fastapi import WebSocket

from chatpulse.core.config import settings
from chatpulse.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class Session:
    """
    One live WebSocket connection.

    Sends are serialised through a per-session lock so a broadcast from one
    connection task and a reply from another never interleave on the socket.
    """

    def __init__(self, websocket: WebSocket, session_id: Optional[str] = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.websocket = websocket
        self.room: Optional[str] = None
        self._send_lock = asyncio.Lock()

    async def send_json(self, payload: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(payload)

    async def emit(self, event: str, data: Any = None) -> None:
        await self.send_json({"event": event, "data": data})

    async def reply(self, ack: Any, data: Any = None) -> None:
        await self.send_json({"event": "ack", "ack": ack, "data": data})


# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Manages WebSocket sessions and delivers room broadcasts.

    Room membership itself lives in the RoomRegistry; this class maps the
    registry's session ids back to live sockets.

    Data Structures:
        sessions: session_id -> Session
                  Example: {"a3f0...": <Session room="r1">}
    """

    def __init__(self, room_registry: RoomRegistry, send_timeout: float = settings.SEND_TIMEOUT_SECONDS) -> None:
        self.sessions: Dict[str, Session] = {}
        self.room_registry = room_registry
        self.send_timeout = send_timeout

    async def connect(self, websocket: WebSocket, room: Optional[str] = None) -> Session:
        """
        Accept a new WebSocket connection and admit it into its room.

        Args:
            websocket: The WebSocket connection object
            room: Room requested in the connection handshake

        Note:
            This is the only place membership is established. A missing or
            empty room leaves the session roomless; the room id is not
            checked against the message store.
        """
        await websocket.accept()

        session = Session(websocket)
        self.sessions[session.id] = session

        if room:
            member_count = await self.room_registry.join(room, session.id)
            session.room = room
            logger.info("✅ Session %s joined room %s (%d members)", session.id, room, member_count)
        else:
            logger.warning("⚠️ Session %s has no room", session.id)

        logger.info("✓ Session %s connected. Total: %d", session.id, len(self.sessions))
        return session

    async def disconnect(self, session: Session) -> None:
        """
        Forget a session and remove it from its room.

        Safe to call more than once for the same session.
        """
        if self.sessions.pop(session.id, None) is None:
            return

        room = await self.room_registry.leave(session.id)
        logger.info(
            "🔴 Session %s disconnected from room %s. Total: %d",
            session.id,
            room,
            len(self.sessions),
        )

    async def broadcast_to_room(self, room_id: str, event: str, data: Any) -> int:
        """
        Send an event to every session currently in a room.

        Delivery is concurrent and independent per session. Each member gets
        ``send_timeout`` seconds; a member that fails or stalls is logged and
        dropped, so one slow reader never holds up the caller or the rest of
        the room.

        Returns:
            Number of sessions the event was delivered to
        """
        member_ids = await self.room_registry.members_of(room_id)
        targets = [s for s in (self.sessions.get(sid) for sid in member_ids) if s is not None]

        if not targets:
            logger.info("[routing] Skipped broadcast: room=%s has 0 members", room_id)
            return 0

        logger.info("📨 Broadcasting %s to room %s: %d clients", event, room_id, len(targets))

        payload = {"event": event, "data": data}
        results = await asyncio.gather(
            *(asyncio.wait_for(target.send_json(payload), self.send_timeout) for target in targets),
            return_exceptions=True,
        )

        failed = []
        for target, result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.error("Send to session %s timed out after %ss", target.id, self.send_timeout)
                failed.append(target)
            elif isinstance(result, Exception):
                logger.error("Send error to session %s: %s", target.id, result)
                failed.append(target)

        # Clean up failed connections
        await self._drop(failed)
        return len(targets) - len(failed)

    async def _drop(self, sessions: Iterable[Session]) -> None:
        for session in sessions:
            await self.disconnect(session)
            # Ends the endpoint loop of the dropped session
            try:
                await asyncio.wait_for(session.websocket.close(), self.send_timeout)
            except Exception as e:
                logger.debug("Close of dropped session %s failed: %s", session.id, e)
