"""Realtime infrastructure (Socket.IO gateway and presence tracking).

HTTP handlers publish entity changes through RealtimeGateway; only the gateway's
own connect/disconnect handlers write to the presence store.
"""

from backoffice.realtime.gateway import RealtimeGateway, create_socket_server
from backoffice.realtime.presence import InMemoryPresenceStore, PresenceEntry, PresenceStore

__all__ = [
    "InMemoryPresenceStore",
    "PresenceEntry",
    "PresenceStore",
    "RealtimeGateway",
    "create_socket_server",
]
