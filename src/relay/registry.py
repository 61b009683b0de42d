"""
Connection Registry

Maps connection ids to per-connection session data and keeps the
room -> members index that the membership manager and router read.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Session data for one live connection.

    Attributes:
        connection_id: Unique id assigned when the connection opened
        transport: Object with an async send(str) method (the WebSocket)
        display_name: Name chosen on the last join/create, None before that
        rooms: Room ids the connection currently belongs to
    """

    connection_id: str
    transport: Any
    display_name: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


class ConnectionRegistry:
    """
    Registry of live connections and their room memberships.

    Only the owning connection sets its own display name; other code
    reads it.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        # room_id -> set of connection ids
        self._room_members: Dict[str, Set[str]] = {}

    def register(self, connection_id: str, transport: Any) -> Session:
        """
        Register a new connection.

        Args:
            connection_id: Unique id for the connection
            transport: The connection's transport handle

        Returns:
            The new Session
        """
        session = Session(connection_id=connection_id, transport=transport)
        self._sessions[connection_id] = session
        logger.debug(f"Registered connection {connection_id}")
        return session

    def unregister(self, connection_id: str) -> Optional[Session]:
        """
        Remove a connection and any memberships it still holds.

        Callers run the leave sweep first; anything left here is dropped
        without notifications.
        """
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None
        for room_id in list(session.rooms):
            self._discard_member(room_id, connection_id)
        session.rooms.clear()
        logger.debug(f"Unregistered connection {connection_id}")
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._sessions

    def connection_count(self) -> int:
        return len(self._sessions)

    def set_display_name(self, connection_id: str, display_name: str):
        session = self._require(connection_id)
        session.display_name = display_name

    def display_name_of(self, connection_id: str) -> Optional[str]:
        """Return the connection's display name, or None if unknown."""
        session = self._sessions.get(connection_id)
        return session.display_name if session else None

    def add_membership(self, connection_id: str, room_id: str):
        """
        Record that a connection joined a room.

        Raises:
            KeyError: If the connection is not registered
        """
        session = self._require(connection_id)
        session.rooms.add(room_id)
        self._room_members.setdefault(room_id, set()).add(connection_id)

    def remove_membership(self, connection_id: str, room_id: str) -> bool:
        """
        Record that a connection left a room.

        Returns:
            True if the connection was a member, False otherwise
        """
        session = self._sessions.get(connection_id)
        if session is None or room_id not in session.rooms:
            return False
        session.rooms.discard(room_id)
        self._discard_member(room_id, connection_id)
        return True

    def is_member(self, connection_id: str, room_id: str) -> bool:
        return connection_id in self._room_members.get(room_id, ())

    def members_of(self, room_id: str) -> List[str]:
        """Get the connection ids currently in a room."""
        return list(self._room_members.get(room_id, ()))

    def member_count(self, room_id: str) -> int:
        return len(self._room_members.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> List[str]:
        session = self._sessions.get(connection_id)
        return list(session.rooms) if session else []

    def _discard_member(self, room_id: str, connection_id: str):
        members = self._room_members.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._room_members[room_id]

    def _require(self, connection_id: str) -> Session:
        session = self._sessions.get(connection_id)
        if session is None:
            raise KeyError(f"Unknown connection {connection_id}")
        return session
