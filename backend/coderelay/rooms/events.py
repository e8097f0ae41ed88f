"""Event catalog and routing table for the relay protocol.

Every WebSocket frame is a JSON object whose ``type`` field names the event;
the remaining fields are the payload:

    {"type": "code-change", "roomId": "ws-1", "code": "x = 1"}

Client events form a closed enum. ``ROUTING`` assigns each of them exactly one
fan-out policy, and ``EventRelay`` refuses to start unless it has a handler for
every member.
"""
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from pydantic import BaseModel, Field


class ClientEvent(str, Enum):
    """Events a client may send."""
    JOIN = "join"
    LEAVE = "leave"
    CODE_CHANGE = "code-change"
    SYNC_CODE = "sync-code"
    CURSOR_POSITION = "cursor-position"
    USER_TYPING = "user-typing"
    CHAT_MESSAGE = "chat-message"
    CHAT_HISTORY = "chat-history"
    CHAT_DELETE_MESSAGE = "chat-delete-message"
    CHAT_DELETE_ALL = "chat-delete-all"


class ServerEvent(str, Enum):
    """Events the server emits."""
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"
    CODE_CHANGE = "code-change"
    CURSOR_UPDATE = "cursor-update"
    USER_TYPING = "user-typing"
    CHAT_MESSAGE = "chat-message"
    CHAT_HISTORY = "chat-history"
    CHAT_MESSAGE_DELETED = "chat-message-deleted"
    CHAT_ALL_DELETED = "chat-all-deleted"
    ERROR = "error"


class Fanout(str, Enum):
    """Who receives the outcome of a client event.

    Attributes:
        ROOM: Every member of the room, sender included.
        ROOM_EXCEPT_SENDER: Every member of the room but the sender.
        TARGET: One connection addressed by the payload.
        REQUESTER: The sender only.
    """
    ROOM = "room"
    ROOM_EXCEPT_SENDER = "room_except_sender"
    TARGET = "target"
    REQUESTER = "requester"


ROUTING: Dict[ClientEvent, Fanout] = {
    ClientEvent.JOIN: Fanout.ROOM,
    # The leaver is already out of the group, so ROOM means "remaining members".
    ClientEvent.LEAVE: Fanout.ROOM,
    ClientEvent.CODE_CHANGE: Fanout.ROOM_EXCEPT_SENDER,
    ClientEvent.SYNC_CODE: Fanout.TARGET,
    ClientEvent.CURSOR_POSITION: Fanout.ROOM_EXCEPT_SENDER,
    ClientEvent.USER_TYPING: Fanout.ROOM_EXCEPT_SENDER,
    ClientEvent.CHAT_MESSAGE: Fanout.ROOM,
    ClientEvent.CHAT_HISTORY: Fanout.REQUESTER,
    ClientEvent.CHAT_DELETE_MESSAGE: Fanout.ROOM,
    ClientEvent.CHAT_DELETE_ALL: Fanout.ROOM,
}


class Outbound(NamedTuple):
    """A message produced by a handler, plus its addressing.

    ``room_id`` is used by the room policies, ``target`` by TARGET.
    """
    message: Dict[str, Any]
    room_id: Optional[str] = None
    target: Optional[str] = None


def event(kind: ServerEvent, **payload: Any) -> Dict[str, Any]:
    """Build a server frame: ``{"type": kind, **payload}``."""
    return {"type": kind.value, **payload}


def error_event(message: str) -> Dict[str, Any]:
    return event(ServerEvent.ERROR, message=message)


# =============================================================================
# Inbound payloads (non-chat; chat payloads live in coderelay.chat.schemas)
# =============================================================================


class JoinPayload(BaseModel):
    roomId: str = Field(..., min_length=1)
    displayName: str = Field(..., min_length=1)


class LeavePayload(BaseModel):
    roomId: str = Field(..., min_length=1)


class CodeChangePayload(BaseModel):
    roomId: str = Field(..., min_length=1)
    code: str = Field(...)


class SyncCodePayload(BaseModel):
    targetConnectionId: str = Field(..., min_length=1)
    code: str = Field(...)


class CursorPositionPayload(BaseModel):
    """Cursor move; ``position`` (usually ``{line, ch}``) is passed through as-is."""
    roomId: str = Field(..., min_length=1)
    position: Dict[str, Any] = Field(...)


class UserTypingPayload(BaseModel):
    roomId: str = Field(..., min_length=1)
    displayName: str = Field(default="")
    isTyping: bool = Field(...)
