"""Rooms module: membership, event relay and presence.

Provides:
    - ConnectionRegistry: connection id -> display name and joined rooms.
    - RoomDirectory: WebSocket broadcast groups keyed by room id.
    - EventRelay: typed event dispatch and fan-out.
    - PresenceLifecycle: disconnect cleanup and departure notices.
"""
from .directory import RoomDirectory
from .events import ClientEvent, Fanout, ROUTING, ServerEvent
from .presence import PresenceLifecycle
from .registry import ConnectionInfo, ConnectionRegistry
from .relay import EventRelay

__all__ = [
    "ClientEvent",
    "ConnectionInfo",
    "ConnectionRegistry",
    "EventRelay",
    "Fanout",
    "PresenceLifecycle",
    "ROUTING",
    "RoomDirectory",
    "ServerEvent",
]
