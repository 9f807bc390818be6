# chatpulse/api/routes/metrics.py
from fastapi import APIRouter
from datetime import datetime, timezone

from chatpulse.core import state

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Relay throughput and capacity metrics.

    Example Response:
        {
            "total_messages": 1200,
            "uptime_hours": 5.5,
            "messages_per_second": 0.06,
            "daily_messages_projected": 5236,
            "concurrent_connections": 42,
            "active_rooms_with_members": 7
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    total = state.message_relay.message_counter if state.message_relay else 0

    if uptime_seconds > 0:
        messages_per_second = total / uptime_seconds
        daily_messages = int(messages_per_second * 86400)
    else:
        messages_per_second = 0
        daily_messages = 0

    active_rooms = await state.room_registry.active_rooms()

    return {
        # Statistics
        "total_messages": total,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 2),
        "daily_messages_projected": daily_messages,

        # Capacity
        "concurrent_connections": len(state.connection_manager.sessions),
        "active_rooms_with_members": len(active_rooms),
    }
