"""Chat history HTTP endpoint.

Endpoints:
    GET /chat/{room_id}/history: Persisted messages of a room, oldest first

Live chat (posting, deleting, typing) goes through the relay WebSocket; this
endpoint is a read-only view for clients that load history outside a socket.
"""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from coderelay.errors import StorageError

from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.get("/chat/{room_id}/history")
async def get_chat_history(room_id: str) -> JSONResponse:
    """Get the full chat history for a room.

    Args:
        room_id: The room (workspace) ID.

    Returns:
        JSON with messages array (oldest first) and count.
    """
    try:
        messages = ChatService.from_singletons().fetch_history(room_id)
    except StorageError as exc:
        return JSONResponse({"error": exc.message}, status_code=503)

    return JSONResponse({
        "messages": [msg.to_event() for msg in messages],
        "count": len(messages),
    })
