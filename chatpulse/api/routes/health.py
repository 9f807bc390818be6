# chatpulse/api/routes/health.py

import logging
import time

from fastapi import APIRouter

from chatpulse.core import state

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns current system status, connection counts and a store ping with
    its round-trip latency. A failed ping reports "degraded" rather than
    raising, so probes can tell the relay is up but its store is not.

    Returns:
        dict: Status, connection count, active room count, store status
    """
    store_ok = False
    latency_ms = None
    if state.message_store is not None:
        start = time.perf_counter()
        try:
            store_ok = await state.message_store.ping()
        except Exception as e:
            logger.warning("Store ping failed: %s", e)
        latency_ms = round((time.perf_counter() - start) * 1000, 2)

    active_rooms = await state.room_registry.active_rooms()
    return {
        "status": "healthy" if store_ok else "degraded",
        "connections": len(state.connection_manager.sessions),
        "active_rooms_with_members": len(active_rooms),
        "store": {"ok": store_ok, "latency_ms": latency_ms},
    }
