"""Presence index: which connection currently speaks for an identity."""

from __future__ import annotations

import logging

from signaling.connection import Connection

LOGGER = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a live identity to exactly one connection.

    The most recent successful authentication wins. Entries are only removed
    by the connection they point at, so a late close from a superseded
    connection cannot evict a fresher one.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(self, uid: str, connection: Connection) -> Connection | None:
        previous = self._connections.get(uid)
        self._connections[uid] = connection
        if previous is not None and previous is not connection:
            LOGGER.info("Identity %s re-authenticated; superseding %r", uid, previous)
            return previous
        return None

    def lookup(self, uid: str) -> Connection | None:
        return self._connections.get(uid)

    def unregister(self, uid: str, connection: Connection) -> bool:
        if self._connections.get(uid) is not connection:
            return False
        del self._connections[uid]
        return True

    def is_online(self, uid: str) -> bool:
        return uid in self._connections

    def online_count(self) -> int:
        return len(self._connections)

    def clear(self) -> None:
        self._connections.clear()
