# chatpulse/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the relay and its endpoints.
    """
    return {
        "message": "ChatPulse Relay",
        "version": "1.0",
        "architecture": "room-scoped websocket relay, single process",
        "events": {
            "client": ["fetch_messages", "send_message"],
            "server": ["room_info", "fetch_messages", "new_message", "error", "ack"],
        },
        "endpoints": {
            "websocket": "/ws?room=<room_id>",
            "active_rooms": "/rooms/active",
            "room_members": "/rooms/{room_id}/members",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
