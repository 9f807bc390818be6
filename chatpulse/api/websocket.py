# chatpulse/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from chatpulse.core import state
from chatpulse.core.errors import ChatRelayError
from chatpulse.models.models import FetchMessagesRequest, RoomInfo, SendMessageRequest
from chatpulse.services.connection_manager import Session

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, room: Optional[str] = None):
    """
    WebSocket endpoint for the room chat protocol.

    Frames:
    =======
    Client -> Server:  {"event": "<name>", "data": {...}, "ack": <id, optional>}
    Server -> Client:  {"event": "<name>", "data": ...}
    Reply to an ack:   {"event": "ack", "ack": <id>, "data": ...}

    Handshake:
    ----------
    The room to join is the ``room`` query parameter: /ws?room=<room_id>

    Server -> Client Events:
    ------------------------
    room_info        {"name": "Product Team"}        once after join
    fetch_messages   [WireMessage, ...]              once after join
    new_message      WireMessage                     every message sent to the room
    error            {"message": "..."}              bad frame without an ack id

    Client -> Server Events:
    ------------------------
    fetch_messages   {"room": "<room_id>"}           reply: [WireMessage, ...]
    send_message     {"sender", "message", "room", "user": {"email", "avatar"?}}
                                                     reply: null or an error string

    Lifecycle:
    ==========
    1. Connection accepted and joined to its handshake room (if any)
    2. Room title and history pushed to this session only
    3. Events handled in arrival order until the socket closes
    4. On disconnect the session is removed from its room

    Error Handling:
        - Invalid JSON or unknown events: error event, connection stays open
        - Send failures: reported only to the sender through the reply
        - Unexpected errors: logged, session cleaned up
    """
    session = await state.connection_manager.connect(websocket, room)

    try:
        if session.room:
            await push_room_state(session)

        while True:
            data = await websocket.receive_text()

            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await session.emit("error", {"message": "Invalid JSON"})
                continue

            if not isinstance(frame, dict):
                await session.emit("error", {"message": "Invalid frame"})
                continue

            await handle_event(session, frame.get("event"), frame.get("data"), frame.get("ack"))

    except WebSocketDisconnect:
        await state.connection_manager.disconnect(session)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        await state.connection_manager.disconnect(session)


async def push_room_state(session: Session) -> None:
    """Send the room title, then the full history, to a session that just joined."""
    title = await state.history_service.get_room_title(session.room)
    await session.emit("room_info", RoomInfo(name=title).model_dump())
    logger.info("📢 Sent room info to %s: %s", session.id, title)

    history = await state.history_service.get_history(session.room)
    await session.emit("fetch_messages", [m.to_wire() for m in history])


async def handle_event(session: Session, event: Any, data: Any, ack: Any = None) -> None:
    logger.debug("Websocket input: session=%s event=%s", session.id, event)

    if event == "fetch_messages":
        try:
            request = FetchMessagesRequest.model_validate(data)
        except ValidationError:
            await report_error(session, ack, "Invalid fetch_messages payload")
            return

        history = await state.history_service.get_history(request.room)
        if ack is not None:
            await session.reply(ack, [m.to_wire() for m in history])

    elif event == "send_message":
        try:
            request = SendMessageRequest.model_validate(data)
        except ValidationError:
            await report_error(session, ack, "Invalid send_message payload")
            return

        try:
            await state.message_relay.send(request)
        except ChatRelayError as e:
            logger.error("❌ Error saving message: %s", e)
            if ack is not None:
                await session.reply(ack, str(e))
            return

        if ack is not None:
            await session.reply(ack, None)

    else:
        await report_error(session, ack, f"Unknown event: {event}")


async def report_error(session: Session, ack: Any, message: str) -> None:
    if ack is not None:
        await session.reply(ack, message)
    else:
        await session.emit("error", {"message": message})
