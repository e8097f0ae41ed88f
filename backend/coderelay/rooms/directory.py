"""Room membership directory built on WebSocket broadcast groups.

A room is nothing more than a group key: it is created lazily by the first
``join_group`` call and disappears when its last member leaves. No workspace
lookup happens here.

Key features:
    - Idempotent group membership (a connection appears at most once per room)
    - Members listed in join order
    - Concurrent fan-out with asyncio.gather()
    - A failing target never blocks or aborts delivery to the others

Thread Safety:
    Designed for a single asyncio event loop. It is NOT thread-safe.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class RoomDirectory:
    """Tracks live sockets and which connections belong to which room."""

    def __init__(self) -> None:
        # connection_id -> WebSocket
        self.connections: Dict[str, WebSocket] = {}

        # room_id -> {connection_id: None} (insertion-ordered set)
        self.groups: Dict[str, Dict[str, None]] = {}

    # =========================================================================
    # Connections
    # =========================================================================

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        self.connections[connection_id] = websocket

    def detach(self, connection_id: str) -> List[str]:
        """Remove a connection from the transport and from every group.

        Returns:
            The rooms the connection was removed from.
        """
        self.connections.pop(connection_id, None)
        left = [
            room_id for room_id, members in self.groups.items()
            if connection_id in members
        ]
        for room_id in left:
            self.leave_group(connection_id, room_id)
        return left

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self.connections

    # =========================================================================
    # Groups
    # =========================================================================

    def join_group(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to a room group.

        Returns:
            True if newly added, False if it was already a member.
        """
        members = self.groups.setdefault(room_id, {})
        if connection_id in members:
            return False
        members[connection_id] = None
        return True

    def leave_group(self, connection_id: str, room_id: str) -> bool:
        members = self.groups.get(room_id)
        if members is None or connection_id not in members:
            return False
        del members[connection_id]
        if not members:
            del self.groups[room_id]
        return True

    def members_of(self, room_id: str) -> List[str]:
        """Connection ids in the room, in join order."""
        return list(self.groups.get(room_id, {}))

    def get_room_size(self, room_id: str) -> int:
        return len(self.groups.get(room_id, {}))

    # =========================================================================
    # Delivery
    # =========================================================================

    async def broadcast(
        self,
        room_id: str,
        message: Dict[str, Any],
        excluding: Optional[str] = None,
    ) -> int:
        """Send a message to every member of a room concurrently.

        Args:
            room_id: Room to broadcast to.
            message: JSON-serializable message.
            excluding: Optional connection id to skip (usually the sender).

        Returns:
            Number of members the message was delivered to.
        """
        targets = [
            connection_id for connection_id in self.members_of(room_id)
            if connection_id != excluding
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *[self.unicast(connection_id, message) for connection_id in targets],
            return_exceptions=True
        )
        return sum(1 for result in results if result is True)

    async def unicast(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """Send a message to a single connection.

        Returns:
            True if sent, False if the connection is unknown or the send failed.
        """
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.debug(f"[Directory] No live socket for {connection_id}")
            return False
        return await self._safe_send(websocket, message)

    async def _safe_send(self, connection: WebSocket, message: Dict[str, Any]) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def clear(self) -> None:
        self.connections.clear()
        self.groups.clear()
