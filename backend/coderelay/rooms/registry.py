"""Connection registry: who is behind each live connection.

Maps a server-assigned connection id to the display name the client gave on
JOIN and to the rooms it has joined. State is process-local and rebuilt from
nothing on restart; reconnecting clients must JOIN again.

Thread Safety:
    Mutated only from the event loop thread. Not safe for use from other
    threads.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    """Registry entry for one live connection.

    Attributes:
        connection_id: Server-assigned connection id.
        display_name: Name supplied on the most recent JOIN.
        rooms: Joined room ids, in join order, without duplicates.
    """
    connection_id: str
    display_name: Optional[str] = None
    rooms: List[str] = field(default_factory=list)


class ConnectionRegistry:
    """In-memory map of connection id -> ConnectionInfo."""

    def __init__(self) -> None:
        self.connections: Dict[str, ConnectionInfo] = {}

    def _entry(self, connection_id: str) -> ConnectionInfo:
        info = self.connections.get(connection_id)
        if info is None:
            info = ConnectionInfo(connection_id=connection_id)
            self.connections[connection_id] = info
        return info

    def register(self, connection_id: str, display_name: str) -> ConnectionInfo:
        """Record (or overwrite) the display name of a connection."""
        info = self._entry(connection_id)
        info.display_name = display_name
        return info

    def resolve_display_name(self, connection_id: str) -> Optional[str]:
        info = self.connections.get(connection_id)
        return info.display_name if info else None

    def add_room(self, connection_id: str, room_id: str) -> bool:
        """Remember that a connection joined a room.

        Returns:
            True if the room was newly added, False if already recorded.
        """
        info = self._entry(connection_id)
        if room_id in info.rooms:
            return False
        info.rooms.append(room_id)
        return True

    def remove_room(self, connection_id: str, room_id: str) -> bool:
        info = self.connections.get(connection_id)
        if info is None or room_id not in info.rooms:
            return False
        info.rooms.remove(room_id)
        return True

    def rooms_of(self, connection_id: str) -> List[str]:
        info = self.connections.get(connection_id)
        return list(info.rooms) if info else []

    def is_known(self, connection_id: str) -> bool:
        return connection_id in self.connections

    def forget(self, connection_id: str) -> Optional[ConnectionInfo]:
        """Drop every trace of a connection.

        Safe to call more than once; later calls are no-ops returning None.
        """
        info = self.connections.pop(connection_id, None)
        if info is not None:
            logger.debug(f"[Registry] Forgot connection {connection_id}")
        return info

    def clear(self) -> None:
        self.connections.clear()
