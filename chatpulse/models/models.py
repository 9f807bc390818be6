# chatpulse/models/models.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# PERSISTED ENTITIES
# ============================================================================

class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class ChatGroup(BaseModel):
    id: str
    title: str
    updated_at: datetime


class ChatMessage(BaseModel):
    id: str
    sender: str
    message: str
    chat_group_id: str
    created_at: datetime
    user_email: str
    user_avatar: Optional[str] = None
    user_id: str


# ============================================================================
# WIRE SHAPES
# ============================================================================

class WireUser(BaseModel):
    email: str
    avatar: Optional[str] = None


class WireMessage(BaseModel):
    """
    The only message shape ever sent to clients.

    Serialize with ``to_wire()`` so optional avatars are omitted instead of
    being sent as ``null``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str
    sender_avatar: Optional[str] = Field(default=None, alias="senderAvatar")
    message: str
    room: str
    created_at: str = Field(alias="createdAt")
    user: WireUser

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def isoformat_utc(moment: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with milliseconds, e.g. 2024-05-01T12:00:00.000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_message(record: ChatMessage) -> WireMessage:
    """Project a persisted ChatMessage onto its client-facing shape."""
    avatar = record.user_avatar or None
    return WireMessage(
        id=record.id,
        sender=record.sender,
        sender_avatar=avatar,
        message=record.message,
        room=record.chat_group_id,
        created_at=isoformat_utc(record.created_at),
        user=WireUser(email=record.user_email, avatar=avatar),
    )


# ============================================================================
# CLIENT REQUESTS
# ============================================================================

class SendMessageUser(BaseModel):
    email: Optional[str] = ""
    avatar: Optional[str] = None


class SendMessageRequest(BaseModel):
    sender: str
    message: str
    room: str
    # Any client-supplied createdAt is ignored; the store stamps the time
    user: SendMessageUser = Field(default_factory=SendMessageUser)


class FetchMessagesRequest(BaseModel):
    room: str


class RoomInfo(BaseModel):
    name: str


# ============================================================================
# RETENTION
# ============================================================================

class SweepResult(BaseModel):
    cutoff: datetime
    room_ids: List[str] = Field(default_factory=list)
    deleted_messages: int = 0
    deleted_rooms: int = 0
