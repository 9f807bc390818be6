# chatpulse/services/redis_store.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from chatpulse.core.config import settings
from chatpulse.core.errors import StoreReadFailed, StoreWriteFailed
from chatpulse.models.models import ChatGroup, ChatMessage, User
from chatpulse.services.message_store import MessageStore, utcnow

logger = logging.getLogger(__name__)

ACTIVITY_KEY = "chat_groups:activity"

# KEYS: group hash, message list, activity zset
# ARGV: message JSON, updated_at score, group id
# Returns 0 without writing anything when the group is gone.
INSERT_MESSAGE_LUA = """
if redis.call("HEXISTS", KEYS[1], "id") == 0 then
    return 0
end
redis.call("RPUSH", KEYS[2], ARGV[1])
redis.call("HSET", KEYS[1], "updated_at", ARGV[2])
redis.call("ZADD", KEYS[3], ARGV[2], ARGV[3])
return 1
"""


def user_key(email: str) -> str:
    return f"user:{email}"


def group_key(group_id: str) -> str:
    return f"chat_group:{group_id}"


def messages_key(group_id: str) -> str:
    return f"chat_group:{group_id}:messages"


def _to_score(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def _from_score(value) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


class RedisMessageStore(MessageStore):
    """
    MessageStore backed by Redis.

    Key layout:
        user:{email}                  hash  (id, email, name, avatar)
        chat_group:{id}               hash  (id, title, updated_at epoch seconds)
        chat_group:{id}:messages      list  of JSON ChatMessage, push order
        chat_groups:activity          zset  group id scored by updated_at

    A message insert runs as one Lua script (group check plus all three
    writes) and each bulk delete is a MULTI/EXEC pipeline, so both apply
    all-or-nothing and an insert can never resurrect a swept group.
    """

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.url = url or settings.redis_url()
        self.client = client
        self._insert_script = None

    async def connect(self):
        """Establish async connection to Redis."""
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info("✓ Connected to Redis message store")

    async def close(self):
        """Close connections."""
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    # ------------------------------------------------------------------
    # Users and groups
    # ------------------------------------------------------------------

    async def find_user(self, email: str) -> Optional[User]:
        data = await self.client.hgetall(user_key(email))
        if not data:
            return None
        return User(**data)

    async def find_group(self, room: str) -> Optional[ChatGroup]:
        try:
            data = await self.client.hgetall(group_key(room))
        except RedisError as e:
            raise StoreReadFailed(str(e)) from e
        # A hash without "id" is a leftover activity stamp, not a group
        if "id" not in data:
            return None
        return ChatGroup(id=data["id"], title=data["title"], updated_at=_from_score(data["updated_at"]))

    async def add_user(
        self, email: str, name: Optional[str] = None, avatar: Optional[str] = None, user_id: Optional[str] = None
    ) -> User:
        user = User(id=user_id or str(uuid.uuid4()), email=email, name=name, avatar=avatar)
        await self.client.hset(user_key(email), mapping=user.model_dump(exclude_none=True))
        return user

    async def add_group(
        self, title: str, group_id: Optional[str] = None, updated_at: Optional[datetime] = None
    ) -> ChatGroup:
        group = ChatGroup(id=group_id or str(uuid.uuid4()), title=title, updated_at=updated_at or utcnow())
        score = _to_score(group.updated_at)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(group_key(group.id), mapping={"id": group.id, "title": group.title, "updated_at": score})
            pipe.zadd(ACTIVITY_KEY, {group.id: score})
            await pipe.execute()
        return group

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(
        self,
        room: str,
        sender: str,
        message: str,
        user_id: str,
        user_email: str,
        user_avatar: Optional[str] = None,
    ) -> ChatMessage:
        record = ChatMessage(
            id=str(uuid.uuid4()),
            sender=sender,
            message=message,
            chat_group_id=room,
            created_at=utcnow(),
            user_email=user_email,
            user_avatar=user_avatar,
            user_id=user_id,
        )

        if self._insert_script is None:
            self._insert_script = self.client.register_script(INSERT_MESSAGE_LUA)

        try:
            stored = await self._insert_script(
                keys=[group_key(room), messages_key(room), ACTIVITY_KEY],
                args=[record.model_dump_json(), repr(_to_score(record.created_at)), room],
            )
        except RedisError as e:
            raise StoreWriteFailed(str(e)) from e

        if not int(stored):
            raise StoreWriteFailed(f"Chat group {room} not found")

        logger.debug("Stored message %s in room %s", record.id, room)
        return record

    async def list_messages(self, room: str) -> List[ChatMessage]:
        try:
            raw = await self.client.lrange(messages_key(room), 0, -1)
        except RedisError as e:
            raise StoreReadFailed(str(e)) from e
        records = [ChatMessage.model_validate_json(item) for item in raw]
        return sorted(records, key=lambda m: m.created_at)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def list_groups_with_activity_older_than(self, cutoff: datetime) -> List[str]:
        return list(await self.client.zrangebyscore(ACTIVITY_KEY, "-inf", f"({_to_score(cutoff)}"))

    async def delete_messages(self, room_ids: Iterable[str]) -> int:
        ids = sorted(set(room_ids))
        if not ids:
            return 0
        async with self.client.pipeline(transaction=True) as pipe:
            for room_id in ids:
                pipe.llen(messages_key(room_id))
            pipe.delete(*[messages_key(room_id) for room_id in ids])
            results = await pipe.execute()
        return sum(int(n) for n in results[: len(ids)])

    async def delete_groups(self, room_ids: Iterable[str]) -> int:
        ids = sorted(set(room_ids))
        if not ids:
            return 0
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(*[group_key(room_id) for room_id in ids])
            pipe.zrem(ACTIVITY_KEY, *ids)
            results = await pipe.execute()
        return int(results[0])
