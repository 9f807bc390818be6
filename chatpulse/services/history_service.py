# chatpulse/services/history_service.py

from __future__ import annotations

import logging
from typing import List

from chatpulse.core.config import settings
from chatpulse.models.models import WireMessage, format_message
from chatpulse.services.message_store import MessageStore

logger = logging.getLogger(__name__)


class HistoryService:
    """
    Read side of a room: its title and its full message history.

    Reads never fail the caller. A store error is logged and degrades to an
    empty history or the "Unknown Room" title, keeping the connection usable.
    """

    def __init__(self, store: MessageStore) -> None:
        self.store = store

    async def get_history(self, room: str) -> List[WireMessage]:
        """All messages of a room, oldest first, in wire shape."""
        try:
            logger.info("Fetching messages for room: %s (from store)", room)
            records = await self.store.list_messages(room)
        except Exception:
            logger.exception("Error fetching messages for room %s", room)
            return []
        return [format_message(record) for record in records]

    async def get_room_title(self, room: str) -> str:
        try:
            group = await self.store.find_group(room)
        except Exception:
            logger.exception("❌ Error fetching room info for %s", room)
            return settings.UNKNOWN_ROOM_TITLE

        if group is None or not group.title:
            return settings.UNKNOWN_ROOM_TITLE
        return group.title
