from typing import Optional

from logging_config import get_logger

logger = get_logger(__name__)


class SessionTracker:
    """Which live connection speaks for which entry.

    A connection represents at most one entry; an entry may be open in
    several tabs or devices at once, so it maps to a set of connections.
    """

    def __init__(self):
        self._entry_by_connection: dict[str, str] = {}
        self._connections_by_entry: dict[str, set[str]] = {}

    def track(self, connection_id: str, entry_id: str):
        previous = self._entry_by_connection.get(connection_id)
        if previous == entry_id:
            return
        if previous is not None:
            self._discard(connection_id, previous)
            logger.debug(f"Connection {connection_id} moved from entry {previous} to {entry_id}")
        self._entry_by_connection[connection_id] = entry_id
        self._connections_by_entry.setdefault(entry_id, set()).add(connection_id)

    def untrack(self, connection_id: str) -> Optional[str]:
        entry_id = self._entry_by_connection.pop(connection_id, None)
        if entry_id is not None:
            self._discard(connection_id, entry_id)
        return entry_id

    def untrack_entry(self, entry_id: str) -> set[str]:
        """Forget every connection tracked to an entry and return them."""
        connection_ids = self._connections_by_entry.pop(entry_id, set())
        for connection_id in connection_ids:
            self._entry_by_connection.pop(connection_id, None)
        return connection_ids

    def connections_for(self, entry_id: str) -> set[str]:
        return set(self._connections_by_entry.get(entry_id, ()))

    def entry_for(self, connection_id: str) -> Optional[str]:
        return self._entry_by_connection.get(connection_id)

    def _discard(self, connection_id: str, entry_id: str):
        connections = self._connections_by_entry.get(entry_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._connections_by_entry[entry_id]
