# chatpulse/services/message_store.py

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from chatpulse.core.errors import StoreWriteFailed
from chatpulse.models.models import ChatGroup, ChatMessage, User

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# MESSAGE STORE INTERFACE
# ============================================================================

class MessageStore(ABC):
    """
    Durable store of users, chat groups and chat messages.

    Every operation is a coroutine; callers suspend on it without blocking
    other connections. Implementations guarantee atomicity of a single
    message insert and of each bulk delete.
    """

    async def connect(self) -> None:
        """Open backing connections. No-op by default."""

    async def close(self) -> None:
        """Release backing connections. No-op by default."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def find_user(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def create_message(
        self,
        room: str,
        sender: str,
        message: str,
        user_id: str,
        user_email: str,
        user_avatar: Optional[str] = None,
    ) -> ChatMessage:
        """
        Persist a message and bump the owning group's activity timestamp.

        Raises:
            StoreWriteFailed: the room does not exist or the write failed
        """

    @abstractmethod
    async def list_messages(self, room: str) -> List[ChatMessage]:
        """All messages of a room, oldest first."""

    @abstractmethod
    async def find_group(self, room: str) -> Optional[ChatGroup]: ...

    @abstractmethod
    async def list_groups_with_activity_older_than(self, cutoff: datetime) -> List[str]: ...

    @abstractmethod
    async def delete_messages(self, room_ids: Iterable[str]) -> int: ...

    @abstractmethod
    async def delete_groups(self, room_ids: Iterable[str]) -> int: ...

    # Seeding helpers; users and groups are owned by other services in production.

    @abstractmethod
    async def add_user(
        self, email: str, name: Optional[str] = None, avatar: Optional[str] = None, user_id: Optional[str] = None
    ) -> User: ...

    @abstractmethod
    async def add_group(
        self, title: str, group_id: Optional[str] = None, updated_at: Optional[datetime] = None
    ) -> ChatGroup: ...


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryMessageStore(MessageStore):
    """
    Process-local MessageStore for development and tests.

    Data Structures:
        users: email -> User
        groups: group_id -> ChatGroup
        messages: group_id -> list of ChatMessage in insertion order
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.users: Dict[str, User] = {}
        self.groups: Dict[str, ChatGroup] = {}
        self.messages: Dict[str, List[ChatMessage]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def find_user(self, email: str) -> Optional[User]:
        return self.users.get(email)

    async def create_message(
        self,
        room: str,
        sender: str,
        message: str,
        user_id: str,
        user_email: str,
        user_avatar: Optional[str] = None,
    ) -> ChatMessage:
        async with self._lock:
            group = self.groups.get(room)
            if group is None:
                raise StoreWriteFailed(f"Chat group {room} not found")

            record = ChatMessage(
                id=str(uuid.uuid4()),
                sender=sender,
                message=message,
                chat_group_id=room,
                created_at=self._clock(),
                user_email=user_email,
                user_avatar=user_avatar,
                user_id=user_id,
            )
            self.messages.setdefault(room, []).append(record)
            group.updated_at = record.created_at
            return record

    async def list_messages(self, room: str) -> List[ChatMessage]:
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(self.messages.get(room, []), key=lambda m: m.created_at)

    async def find_group(self, room: str) -> Optional[ChatGroup]:
        return self.groups.get(room)

    async def list_groups_with_activity_older_than(self, cutoff: datetime) -> List[str]:
        return [g.id for g in self.groups.values() if g.updated_at < cutoff]

    async def delete_messages(self, room_ids: Iterable[str]) -> int:
        async with self._lock:
            count = 0
            for room_id in set(room_ids):
                count += len(self.messages.pop(room_id, []))
            return count

    async def delete_groups(self, room_ids: Iterable[str]) -> int:
        async with self._lock:
            count = 0
            for room_id in set(room_ids):
                if self.groups.pop(room_id, None) is not None:
                    count += 1
            return count

    async def add_user(
        self, email: str, name: Optional[str] = None, avatar: Optional[str] = None, user_id: Optional[str] = None
    ) -> User:
        user = User(id=user_id or str(uuid.uuid4()), email=email, name=name, avatar=avatar)
        self.users[email] = user
        return user

    async def add_group(
        self, title: str, group_id: Optional[str] = None, updated_at: Optional[datetime] = None
    ) -> ChatGroup:
        group = ChatGroup(id=group_id or str(uuid.uuid4()), title=title, updated_at=updated_at or self._clock())
        self.groups[group.id] = group
        return group
