"""Pydantic schemas for the chat sub-protocol.

Two families live here:
    - ChatMessage: the canonical persisted record (storage-assigned id and
      creation time) and its wire rendering.
    - Inbound payloads for the chat events, validated at the relay boundary.

Client-supplied timestamps are accepted for compatibility but never stored and
never used for ordering or authorization.
"""
import math
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def _as_str(value: Any) -> Any:
    # Clients send numeric user ids from the relational users table.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        raise ValueError("userId must be a string or an integer")
    return value


class ChatMessage(BaseModel):
    """A persisted chat message.

    Attributes:
        id: Monotonic identifier assigned by storage.
        roomId: Room (workspace) the message belongs to.
        userId: Author's user id.
        displayName: Author's display name at posting time.
        body: Message text.
        createdAt: Storage-assigned creation time (naive UTC).
    """
    id: int = Field(..., description="Storage-assigned message id")
    roomId: str = Field(..., description="Room ID this message belongs to")
    userId: str = Field(..., description="Author user id")
    displayName: str = Field(default="", description="Author display name")
    body: str = Field(..., description="Message text")
    createdAt: datetime = Field(..., description="Storage-assigned creation time (UTC)")

    def to_event(self) -> Dict[str, Any]:
        """Render the message as broadcast to clients."""
        return {
            "id": self.id,
            "displayName": self.displayName,
            "userId": self.userId,
            "body": self.body,
            "timestamp": self.createdAt.isoformat() + "Z",
        }


class _UserScoped(BaseModel):
    roomId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)

    @field_validator("userId", mode="before")
    @classmethod
    def coerce_user_id(cls, value: Any) -> Any:
        return _as_str(value)


class ChatMessageInput(_UserScoped):
    """Payload of a client ``chat-message`` event."""
    displayName: str = Field(default="")
    body: str = Field(..., min_length=1)
    clientTimestamp: Optional[Any] = Field(
        default=None, description="Advisory only; ignored by the server"
    )

    @field_validator("body")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("body must not be blank")
        return value


class ChatHistoryRequest(BaseModel):
    """Payload of a client ``chat-history`` event."""
    roomId: str = Field(..., min_length=1)


class ChatDeleteMessageRequest(_UserScoped):
    """Payload of a client ``chat-delete-message`` event."""
    messageId: int = Field(...)


class ChatDeleteAllRequest(_UserScoped):
    """Payload of a client ``chat-delete-all`` event."""
