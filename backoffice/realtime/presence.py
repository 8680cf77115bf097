"""Online presence registry behind a small async interface.

InMemoryPresenceStore is process-local: with several server processes each one
only sees its own connections. A shared implementation (e.g. Redis) can be
dropped in by implementing PresenceStore.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from backoffice.models.user import Role


@dataclass(frozen=True)
class PresenceEntry:
    account_id: int
    role: Role
    connection_id: str


class PresenceStore(ABC):
    """Tracks which accounts hold at least one live realtime connection."""

    @abstractmethod
    async def add(self, entry: PresenceEntry) -> bool:
        """Record a connection. Returns True if the account was offline before."""

    @abstractmethod
    async def remove(self, connection_id: str) -> PresenceEntry | None:
        """
        Forget a connection. Returns its entry when that was the account's last
        connection (the account is now offline), else None.
        """

    @abstractmethod
    async def list_online(self) -> list[int]:
        """Account ids with at least one connection, in connection order."""


class InMemoryPresenceStore(PresenceStore):
    def __init__(self) -> None:
        # account id -> {connection id -> entry}; dict order = first-seen order
        self._by_account: dict[int, dict[str, PresenceEntry]] = {}
        self._by_connection: dict[str, PresenceEntry] = {}

    async def add(self, entry: PresenceEntry) -> bool:
        connections = self._by_account.setdefault(entry.account_id, {})
        was_offline = not connections
        connections[entry.connection_id] = entry
        self._by_connection[entry.connection_id] = entry
        return was_offline

    async def remove(self, connection_id: str) -> PresenceEntry | None:
        entry = self._by_connection.pop(connection_id, None)
        if entry is None:
            return None
        connections = self._by_account.get(entry.account_id, {})
        connections.pop(connection_id, None)
        if connections:
            return None
        self._by_account.pop(entry.account_id, None)
        return entry

    async def list_online(self) -> list[int]:
        return list(self._by_account.keys())
