"""Process-wide relay state.

One registry and one directory per process, shared by every WebSocket
handler. Horizontal scaling would need an external pub/sub backplane; this
module assumes a single server process.
"""
from .directory import RoomDirectory
from .presence import PresenceLifecycle
from .registry import ConnectionRegistry
from .relay import EventRelay

registry = ConnectionRegistry()
directory = RoomDirectory()
relay = EventRelay(registry, directory)
presence = PresenceLifecycle(registry, directory)


def reset() -> None:
    """Drop all connections and rooms (used by tests)."""
    registry.clear()
    directory.clear()
