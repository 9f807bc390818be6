# chatpulse/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from chatpulse.services.connection_manager import ConnectionManager
from chatpulse.services.history_service import HistoryService
from chatpulse.services.message_relay import MessageRelay
from chatpulse.services.message_store import MessageStore
from chatpulse.services.retention import RetentionScheduler
from chatpulse.services.room_registry import RoomRegistry

# Global singletons for app state
room_registry = RoomRegistry()
connection_manager = ConnectionManager(room_registry=room_registry)

# Wired on startup once the message store exists
message_store: Optional[MessageStore] = None
history_service: Optional[HistoryService] = None
message_relay: Optional[MessageRelay] = None
retention_scheduler: Optional[RetentionScheduler] = None

# Metrics
app_start_time: datetime = datetime.now(timezone.utc)


def init_services(store: MessageStore) -> None:
    """Bind the store-backed services to ``store`` and the current connection manager."""
    global message_store, history_service, message_relay

    message_store = store
    history_service = HistoryService(store)
    message_relay = MessageRelay(store, connection_manager)
