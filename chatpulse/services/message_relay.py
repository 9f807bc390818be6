# chatpulse/services/message_relay.py

from __future__ import annotations

import logging

from chatpulse.core.config import settings
from chatpulse.core.errors import StoreWriteFailed, UnknownSender
from chatpulse.models.models import SendMessageRequest, WireMessage, format_message
from chatpulse.services.connection_manager import ConnectionManager
from chatpulse.services.message_store import MessageStore

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "new_message"


class MessageRelay:
    """
    Validates, persists and fans out chat messages.

    Flow:
        1. Resolve the sender by email (UnknownSender on miss)
        2. Persist the message (StoreWriteFailed on any store error)
        3. Format it into a WireMessage
        4. Broadcast "new_message" to every member of the room, sender included

    Nothing is broadcast unless step 2 completed, so no client ever sees a
    message that is not durably stored.
    """

    def __init__(self, store: MessageStore, connection_manager: ConnectionManager) -> None:
        self.store = store
        self.connection_manager = connection_manager
        self.message_counter = 0

    async def send(self, request: SendMessageRequest) -> WireMessage:
        """
        Raises:
            UnknownSender: no user matches request.user.email
            StoreWriteFailed: the lookup or the insert failed
        """
        email = request.user.email or settings.FALLBACK_SENDER_EMAIL
        avatar = request.user.avatar or None

        logger.info("📩 Received message from %s for room %s", email, request.room)

        try:
            user = await self.store.find_user(email)
        except Exception as e:
            raise StoreWriteFailed(str(e) or None) from e
        if user is None:
            raise UnknownSender.for_email(email)

        try:
            record = await self.store.create_message(
                room=request.room,
                sender=request.sender,
                message=request.message,
                user_id=user.id,
                user_email=email,
                user_avatar=avatar,
            )
        except StoreWriteFailed:
            raise
        except Exception as e:
            raise StoreWriteFailed(str(e) or None) from e

        wire = format_message(record)
        delivered = await self.connection_manager.broadcast_to_room(request.room, NEW_MESSAGE_EVENT, wire.to_wire())
        self.message_counter += 1

        logger.info("✅ Message %s broadcast to room %s (%d clients)", record.id, request.room, delivered)
        return wire
