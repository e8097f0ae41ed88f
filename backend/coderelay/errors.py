"""Error taxonomy for the relay.

Handlers raise these; the WebSocket boundary converts every one of them into a
single ``{"type": "error", "message": ...}`` frame sent to the requester only.
The ``message`` attribute is the short, client-safe text.
"""


class RelayError(Exception):
    """Base class for errors reported back to the requesting connection."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(RelayError):
    """A workspace (room) or chat message does not exist."""


class PermissionDeniedError(RelayError):
    """The requester is not allowed to perform the operation."""


class StorageError(RelayError):
    """A persistence round-trip failed."""


class InvalidPayloadError(RelayError):
    """An inbound frame is malformed or names an unknown event."""
