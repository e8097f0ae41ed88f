"""Chat business rules: posting, history and deletion authorization.

The service persists through ``ChatMessageStore`` and resolves room owners
through ``WorkspaceService``. It never talks to sockets; the relay turns its
return values into broadcasts and its exceptions into ``error`` frames.

Deletion Policy:
    - The workspace owner may delete any message, at any time.
    - The author may delete their own message while
      ``now - createdAt <= grace`` (5 minutes by default).
    - Everyone else is denied.
    - Only the owner may delete all messages of a room.

``createdAt`` always comes from storage; a client-supplied timestamp is never
consulted.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import duckdb

from coderelay.config import get_config
from coderelay.errors import (
    InvalidPayloadError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from coderelay.workspaces.service import WorkspaceService

from .schemas import ChatMessage
from .store import ChatMessageStore, utcnow

logger = logging.getLogger(__name__)


def can_author_delete(message: ChatMessage, now: datetime, grace: timedelta) -> bool:
    """True while the message is inside its deletion grace period.

    The boundary itself is still allowed; only a strictly longer elapsed
    time is rejected.
    """
    return now - message.createdAt <= grace


class ChatService:
    """Chat operations for one process.

    Attributes:
        store: Message persistence.
        workspaces: Owner lookup.
        grace: How long authors may delete their own messages.
        clock: Source of "now" for grace-period checks (naive UTC).
    """

    def __init__(
        self,
        store: ChatMessageStore,
        workspaces: WorkspaceService,
        grace: Optional[timedelta] = None,
        max_message_length: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        chat_settings = get_config().chat
        self.store = store
        self.workspaces = workspaces
        self.grace = grace if grace is not None else timedelta(
            minutes=chat_settings.delete_grace_minutes
        )
        self.max_message_length = max_message_length or chat_settings.max_message_length
        self.clock = clock

    @classmethod
    def from_singletons(cls) -> "ChatService":
        """Build a service over the process-wide store and workspace service."""
        return cls(ChatMessageStore.get_instance(), WorkspaceService.get_instance())

    # =========================================================================
    # Posting and history
    # =========================================================================

    def post_message(
        self, room_id: str, user_id: str, display_name: str, body: str
    ) -> ChatMessage:
        """Persist a message and return the stored record.

        The returned record (storage id and timestamp) is what gets broadcast,
        so every client, the author included, renders the same copy.
        """
        if len(body) > self.max_message_length:
            raise InvalidPayloadError(
                f"Message exceeds {self.max_message_length} characters"
            )
        try:
            message = self.store.insert_message(room_id, user_id, display_name, body)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Failed to save message in room {room_id}: {exc}")
            raise StorageError("Failed to save message") from exc

        logger.info(f"[Chat] Message {message.id} posted in room {room_id} by {user_id}")
        return message

    def fetch_history(self, room_id: str) -> List[ChatMessage]:
        """Messages of a room, oldest first by storage time."""
        try:
            return self.store.list_messages(room_id)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Failed to load history for room {room_id}: {exc}")
            raise StorageError("Failed to load chat history") from exc

    # =========================================================================
    # Deletion
    # =========================================================================

    def _owner_of(self, room_id: str, failure: str) -> str:
        try:
            owner_id = self.workspaces.get_owner_id(room_id)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Owner lookup failed for room {room_id}: {exc}")
            raise StorageError(failure) from exc
        if owner_id is None:
            raise NotFoundError("Workspace not found")
        return owner_id

    def delete_message(self, room_id: str, message_id: int, requester_id: str) -> int:
        """Delete one message if the requester is allowed to.

        Args:
            room_id: Room the message belongs to.
            message_id: Storage id of the message.
            requester_id: User id asking for the deletion.

        Returns:
            The deleted message id.

        Raises:
            NotFoundError: Unknown workspace or message.
            PermissionDeniedError: Neither owner nor author within the grace period.
            StorageError: A database round-trip failed.
        """
        failure = "Failed to delete message"
        owner_id = self._owner_of(room_id, failure)

        try:
            message = self.store.get_message(message_id, room_id)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Failed to load message {message_id}: {exc}")
            raise StorageError(failure) from exc
        if message is None:
            raise NotFoundError("Message not found")

        if requester_id != owner_id:
            if requester_id != message.userId:
                logger.warning(
                    f"[Chat] User {requester_id} denied deleting message {message_id} "
                    f"in room {room_id}"
                )
                raise PermissionDeniedError(
                    "You do not have permission to delete this message"
                )
            if not can_author_delete(message, self.clock(), self.grace):
                logger.warning(
                    f"[Chat] Grace period over for message {message_id} (author {requester_id})"
                )
                raise PermissionDeniedError(
                    "You can only delete messages within "
                    f"{self.grace.total_seconds() / 60:g} minutes of sending"
                )

        try:
            self.store.delete_message(message_id, room_id)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Failed to delete message {message_id}: {exc}")
            raise StorageError(failure) from exc

        logger.info(f"[Chat] Message {message_id} deleted in room {room_id} by {requester_id}")
        return message_id

    def delete_all_messages(self, room_id: str, requester_id: str) -> None:
        """Delete every message of a room (owner only).

        Raises:
            NotFoundError: Unknown workspace.
            PermissionDeniedError: Requester is not the owner.
            StorageError: A database round-trip failed.
        """
        failure = "Failed to delete all messages"
        owner_id = self._owner_of(room_id, failure)
        if requester_id != owner_id:
            logger.warning(f"[Chat] Non-owner {requester_id} denied clearing room {room_id}")
            raise PermissionDeniedError("Only workspace owner can delete all messages")

        try:
            self.store.delete_all_messages(room_id)
        except duckdb.Error as exc:
            logger.error(f"[Chat] Failed to clear room {room_id}: {exc}")
            raise StorageError(failure) from exc
