"""Event relay: validates client frames, runs handlers, fans out results.

Each handler returns an ``Outbound`` (or None) and the relay delivers it
according to ``ROUTING``. Handlers raise ``RelayError`` subclasses for every
expected failure; ``handle`` turns those into an ``error`` frame for the
sender only and never broadcasts them. Any other exception is logged and
reported to the sender as a generic "Internal error"; the connection stays
open.

Code edits are relayed as raw text with no merging: the last write seen by a
client wins on that client's screen.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from coderelay.chat.schemas import (
    ChatDeleteAllRequest,
    ChatDeleteMessageRequest,
    ChatHistoryRequest,
    ChatMessageInput,
)
from coderelay.chat.service import ChatService
from coderelay.config import get_config
from coderelay.errors import InvalidPayloadError, PermissionDeniedError, RelayError

from .directory import RoomDirectory
from .events import (
    ROUTING,
    ClientEvent,
    CodeChangePayload,
    CursorPositionPayload,
    Fanout,
    JoinPayload,
    LeavePayload,
    Outbound,
    ServerEvent,
    SyncCodePayload,
    UserTypingPayload,
    error_event,
    event,
)
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], Awaitable[Optional[Outbound]]]


class EventRelay:
    """Routes client events between connections of the same room.

    Attributes:
        registry: Connection id -> display name and joined rooms.
        directory: Room groups and live sockets.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: RoomDirectory,
        chat: Optional[ChatService] = None,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self._chat = chat
        self._handlers: Dict[ClientEvent, Tuple[Type[BaseModel], Handler]] = {
            ClientEvent.JOIN: (JoinPayload, self._on_join),
            ClientEvent.LEAVE: (LeavePayload, self._on_leave),
            ClientEvent.CODE_CHANGE: (CodeChangePayload, self._on_code_change),
            ClientEvent.SYNC_CODE: (SyncCodePayload, self._on_sync_code),
            ClientEvent.CURSOR_POSITION: (CursorPositionPayload, self._on_cursor_position),
            ClientEvent.USER_TYPING: (UserTypingPayload, self._on_user_typing),
            ClientEvent.CHAT_MESSAGE: (ChatMessageInput, self._on_chat_message),
            ClientEvent.CHAT_HISTORY: (ChatHistoryRequest, self._on_chat_history),
            ClientEvent.CHAT_DELETE_MESSAGE: (ChatDeleteMessageRequest, self._on_chat_delete_message),
            ClientEvent.CHAT_DELETE_ALL: (ChatDeleteAllRequest, self._on_chat_delete_all),
        }
        missing = set(ClientEvent) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(e.value for e in missing)}")

    @property
    def chat(self) -> ChatService:
        if self._chat is not None:
            return self._chat
        return ChatService.from_singletons()

    # =========================================================================
    # Boundary
    # =========================================================================

    def _parse(self, frame: Any) -> Tuple[ClientEvent, BaseModel]:
        if not isinstance(frame, dict):
            raise InvalidPayloadError("Invalid message format: expected a JSON object")
        raw_type = frame.get("type")
        try:
            kind = ClientEvent(raw_type)
        except ValueError:
            raise InvalidPayloadError(f"Unknown event type: {raw_type}") from None

        model, _ = self._handlers[kind]
        payload = {k: v for k, v in frame.items() if k != "type"}
        try:
            return kind, model.model_validate(payload)
        except ValidationError as exc:
            logger.debug(f"[Relay] Invalid {kind.value} payload: {exc}")
            raise InvalidPayloadError(f"Invalid {kind.value} payload") from exc

    async def handle(self, connection_id: str, frame: Any) -> None:
        """Process one inbound frame from ``connection_id`` to completion."""
        try:
            kind, payload = self._parse(frame)
            logger.debug(f"[Relay] {connection_id} -> {kind.value}")
            _, handler = self._handlers[kind]
            outbound = await handler(connection_id, payload)
            if outbound is not None:
                await self._deliver(ROUTING[kind], connection_id, outbound)
        except RelayError as exc:
            logger.warning(f"[Relay] Error for {connection_id}: {exc.message}")
            await self.directory.unicast(connection_id, error_event(exc.message))
        except Exception:
            logger.exception(f"[Relay] Unhandled error processing frame from {connection_id}")
            await self.directory.unicast(connection_id, error_event("Internal error"))

    async def _deliver(self, fanout: Fanout, sender: str, outbound: Outbound) -> None:
        if fanout is Fanout.ROOM:
            await self.directory.broadcast(outbound.room_id, outbound.message)
        elif fanout is Fanout.ROOM_EXCEPT_SENDER:
            await self.directory.broadcast(outbound.room_id, outbound.message, excluding=sender)
        elif fanout is Fanout.TARGET:
            await self.directory.unicast(outbound.target, outbound.message)
        else:
            await self.directory.unicast(sender, outbound.message)

    def members(self, room_id: str) -> List[Dict[str, Optional[str]]]:
        """Membership snapshot as sent in ``joined`` frames."""
        return [
            {
                "connectionId": connection_id,
                "displayName": self.registry.resolve_display_name(connection_id),
            }
            for connection_id in self.directory.members_of(room_id)
        ]

    # =========================================================================
    # Membership
    # =========================================================================

    async def _on_join(self, connection_id: str, payload: JoinPayload) -> Outbound:
        room_id = payload.roomId
        limit = get_config().rooms.max_rooms_per_connection
        joined = self.registry.rooms_of(connection_id)
        if limit > 0 and room_id not in joined and len(joined) >= limit:
            raise PermissionDeniedError(f"Cannot join more than {limit} rooms")

        self.registry.register(connection_id, payload.displayName)
        self.directory.join_group(connection_id, room_id)
        self.registry.add_room(connection_id, room_id)

        members = self.members(room_id)
        logger.info(
            f"[Relay] {payload.displayName} ({connection_id}) joined room {room_id}; "
            f"{len(members)} member(s)"
        )
        return Outbound(
            event(
                ServerEvent.JOINED,
                members=members,
                displayName=payload.displayName,
                connectionId=connection_id,
            ),
            room_id=room_id,
        )

    async def _on_leave(self, connection_id: str, payload: LeavePayload) -> Optional[Outbound]:
        room_id = payload.roomId
        if not self.directory.leave_group(connection_id, room_id):
            return None
        self.registry.remove_room(connection_id, room_id)
        logger.info(f"[Relay] {connection_id} left room {room_id}")
        return Outbound(
            event(
                ServerEvent.DISCONNECTED,
                connectionId=connection_id,
                displayName=self.registry.resolve_display_name(connection_id),
            ),
            room_id=room_id,
        )

    # =========================================================================
    # Editor
    # =========================================================================

    async def _on_code_change(self, connection_id: str, payload: CodeChangePayload) -> Outbound:
        return Outbound(event(ServerEvent.CODE_CHANGE, code=payload.code), room_id=payload.roomId)

    async def _on_sync_code(self, connection_id: str, payload: SyncCodePayload) -> Outbound:
        return Outbound(
            event(ServerEvent.CODE_CHANGE, code=payload.code),
            target=payload.targetConnectionId,
        )

    async def _on_cursor_position(
        self, connection_id: str, payload: CursorPositionPayload
    ) -> Outbound:
        return Outbound(
            event(
                ServerEvent.CURSOR_UPDATE,
                connectionId=connection_id,
                displayName=self.registry.resolve_display_name(connection_id),
                position=payload.position,
            ),
            room_id=payload.roomId,
        )

    async def _on_user_typing(self, connection_id: str, payload: UserTypingPayload) -> Outbound:
        display_name = payload.displayName or self.registry.resolve_display_name(connection_id)
        return Outbound(
            event(
                ServerEvent.USER_TYPING,
                displayName=display_name,
                isTyping=payload.isTyping,
            ),
            room_id=payload.roomId,
        )

    # =========================================================================
    # Chat
    # =========================================================================

    async def _on_chat_message(self, connection_id: str, payload: ChatMessageInput) -> Outbound:
        display_name = payload.displayName or self.registry.resolve_display_name(connection_id) or ""
        message = self.chat.post_message(payload.roomId, payload.userId, display_name, payload.body)
        return Outbound(
            event(ServerEvent.CHAT_MESSAGE, **message.to_event()),
            room_id=payload.roomId,
        )

    async def _on_chat_history(self, connection_id: str, payload: ChatHistoryRequest) -> Outbound:
        messages = self.chat.fetch_history(payload.roomId)
        return Outbound(
            event(ServerEvent.CHAT_HISTORY, messages=[m.to_event() for m in messages])
        )

    async def _on_chat_delete_message(
        self, connection_id: str, payload: ChatDeleteMessageRequest
    ) -> Outbound:
        message_id = self.chat.delete_message(payload.roomId, payload.messageId, payload.userId)
        return Outbound(
            event(ServerEvent.CHAT_MESSAGE_DELETED, messageId=message_id),
            room_id=payload.roomId,
        )

    async def _on_chat_delete_all(
        self, connection_id: str, payload: ChatDeleteAllRequest
    ) -> Outbound:
        self.chat.delete_all_messages(payload.roomId, payload.userId)
        logger.info(f"[Relay] All chat messages deleted in room {payload.roomId}")
        return Outbound(event(ServerEvent.CHAT_ALL_DELETED), room_id=payload.roomId)
