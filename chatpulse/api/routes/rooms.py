# chatpulse/api/routes/rooms.py

from typing import Dict, List

from fastapi import APIRouter

from chatpulse.core import state

router = APIRouter(prefix="/rooms", tags=["Rooms"])

# ============================================================================
# ROOM MEMBERSHIP DIAGNOSTICS
# ============================================================================

@router.get("/active", response_model=Dict[str, int])
async def list_active_rooms():
    """
    Rooms that currently have connected members.

    Returns:
        Dict[str, int]: room_id -> member count
    """
    return await state.room_registry.active_rooms()


@router.get("/{room_id}/members", response_model=List[str])
async def get_room_members(room_id: str):
    """
    Session ids currently joined to a room. Empty for unknown or idle rooms.
    """
    return sorted(await state.room_registry.members_of(room_id))
