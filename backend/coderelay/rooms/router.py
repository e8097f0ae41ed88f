"""Rooms router providing the relay WebSocket and a membership endpoint.

This module provides:
    - WebSocket /ws: Real-time relay for editor, presence and chat events
    - GET /rooms/{room_id}/members: Current membership snapshot

Protocol Flow:
    1. Client connects → Server assigns a connection id
       → Server sends: {type: "connected", connectionId: "xxx"}
    2. Client sends: {type: "join", roomId, displayName}
       → Server sends to every member: {type: "joined", members, displayName, connectionId}
    3. Client sends editor/chat events (see coderelay.rooms.events)
    4. On disconnect → every joined room receives
       {type: "disconnected", connectionId, displayName}
"""
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .events import ServerEvent, error_event, event
from .hub import directory, presence, relay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


@router.get("/rooms/{room_id}/members")
async def get_room_members(room_id: str) -> JSONResponse:
    """Get the connections currently joined to a room.

    Args:
        room_id: The room ID.

    Returns:
        JSON with roomId and members ([{connectionId, displayName}]).
    """
    return JSONResponse({"roomId": room_id, "members": relay.members(room_id)})


@router.websocket("/ws")
async def websocket_relay_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint carrying every relay event for one client.

    Frames are processed one at a time, so a client's events are handled in
    the order it sent them. Errors are reported to this client only and never
    close the connection.
    """
    await websocket.accept()
    connection_id = str(uuid.uuid4())
    directory.attach(connection_id, websocket)
    logger.info(f"[WS] Connection accepted: {connection_id}")

    try:
        await websocket.send_json(event(ServerEvent.CONNECTED, connectionId=connection_id))

        while True:
            try:
                data = await websocket.receive_json()
            except (ValueError, KeyError):
                # KeyError: binary frame with no text part.
                await websocket.send_json(error_event("Invalid message format: not JSON"))
                continue
            await relay.handle(connection_id, data)

    except WebSocketDisconnect:
        logger.info(f"[WS] Connection closed: {connection_id}")
    finally:
        await presence.handle_disconnect(connection_id)
