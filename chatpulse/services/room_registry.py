# chatpulse/services/room_registry.py

from __future__ import annotations

import asyncio
import logging
from typing import Dict, FrozenSet, Optional, Set

logger = logging.getLogger(__name__)


# ============================================================================
# ROOM MEMBERSHIP REGISTRY
# ============================================================================

class RoomRegistry:
    """
    In-memory room membership: which sessions are in which room right now.

    Membership is runtime-only and never persisted. A session belongs to at
    most one room; a room whose last member leaves is dropped from the map.

    Data Structures:
        rooms: room_id -> Set[session_id]
               Example: {"r1": {"a3f0...", "9bc1..."}}

        session_rooms: session_id -> room_id
                       Example: {"a3f0...": "r1"}

    All reads and writes go through one asyncio.Lock, so a broadcast taking a
    membership snapshot never observes a half-applied join or leave.
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, Set[str]] = {}
        self.session_rooms: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def join(self, room_id: str, session_id: str) -> int:
        """
        Add a session to a room. Joining the same room twice is a no-op.

        A session already in a different room is moved, keeping the
        single-room invariant.

        Returns:
            Member count of the room after the join
        """
        async with self._lock:
            current = self.session_rooms.get(session_id)
            if current is not None and current != room_id:
                self._discard(current, session_id)

            self.rooms.setdefault(room_id, set()).add(session_id)
            self.session_rooms[session_id] = room_id
            return len(self.rooms[room_id])

    async def leave(self, session_id: str) -> Optional[str]:
        """
        Remove a session from whichever room it is in.

        Returns:
            The room the session left, or None if it was roomless
        """
        async with self._lock:
            room_id = self.session_rooms.pop(session_id, None)
            if room_id is not None:
                self._discard(room_id, session_id)
            return room_id

    async def members_of(self, room_id: str) -> FrozenSet[str]:
        """Snapshot of the sessions currently in a room (unordered)."""
        async with self._lock:
            return frozenset(self.rooms.get(room_id, ()))

    async def room_of(self, session_id: str) -> Optional[str]:
        async with self._lock:
            return self.session_rooms.get(session_id)

    async def active_rooms(self) -> Dict[str, int]:
        """Map of room_id -> member count for rooms with at least one member."""
        async with self._lock:
            return {room_id: len(members) for room_id, members in self.rooms.items()}

    def _discard(self, room_id: str, session_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(session_id)
        # Clean up empty rooms from memory
        if not members:
            del self.rooms[room_id]
