"""Presence lifecycle: cleanup when a transport connection drops.

No explicit LEAVE is needed. On disconnect the connection is detached from
every group first, then each room it had joined receives
``disconnected {connectionId, displayName}``, then the registry entry is
erased. A failure while notifying one room does not stop the others, and the
registry entry is erased even if notification fails.
"""
import logging
from typing import List

from .directory import RoomDirectory
from .events import ServerEvent, event
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class PresenceLifecycle:
    def __init__(self, registry: ConnectionRegistry, directory: RoomDirectory) -> None:
        self.registry = registry
        self.directory = directory

    async def handle_disconnect(self, connection_id: str) -> List[str]:
        """Announce the departure of ``connection_id`` and forget it.

        Returns:
            The rooms that were notified. Empty for a connection that never
            joined a room or that was already cleaned up.
        """
        if not (self.directory.is_attached(connection_id)
                or self.registry.is_known(connection_id)):
            return []

        display_name = self.registry.resolve_display_name(connection_id)
        rooms = self.registry.rooms_of(connection_id)
        self.directory.detach(connection_id)

        notice = event(
            ServerEvent.DISCONNECTED,
            connectionId=connection_id,
            displayName=display_name,
        )
        notified: List[str] = []
        try:
            for room_id in rooms:
                try:
                    await self.directory.broadcast(room_id, notice)
                    notified.append(room_id)
                except Exception:
                    logger.exception(
                        f"[Presence] Failed to notify room {room_id} about {connection_id}"
                    )
        finally:
            self.registry.forget(connection_id)

        logger.info(
            f"[Presence] {display_name or connection_id} disconnected; "
            f"notified {len(notified)} room(s)"
        )
        return notified
