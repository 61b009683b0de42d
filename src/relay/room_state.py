"""
Room Directory for the Relay

This module holds the process-wide mapping from room id to room metadata.
It is the single source of truth for whether a room exists and what kind
it is. Member counts are not stored here; they come from the connection
registry's membership index.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from .errors import RoomExistsError

logger = logging.getLogger(__name__)

ROOM_ID_LENGTH = 8
ROOM_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

# Private rooms are one-to-one; the cap may be lowered but never raised
PRIVATE_ROOM_CAPACITY = 2


class RoomKind(Enum):
    """Kind of a room, fixed at creation."""

    PRIVATE = "private"
    GROUP = "group"


@dataclass(frozen=True)
class Room:
    """
    A registered room.

    Attributes:
        room_id: Unique identifier for the room
        kind: Private (two members at most) or group
        creator_id: Connection id that caused the room to be registered
        created_at: ISO 8601 timestamp when the room was registered
    """

    room_id: str
    kind: RoomKind
    creator_id: str
    created_at: str

    def to_dict(self) -> Dict:
        """Convert room to dictionary for serialization."""
        return {
            "room_id": self.room_id,
            "kind": self.kind.value,
            "creator_id": self.creator_id,
            "created_at": self.created_at,
        }


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    """Generate a short URL-safe room id."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


class RoomDirectory:
    """
    Registry of live rooms.

    A room's kind can only be set by register(); there is no way to
    change it afterwards. Mutations are visible to the next call.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def exists(self, room_id: str) -> bool:
        """Return True if the room is registered."""
        return room_id in self._rooms

    def kind_of(self, room_id: str) -> Optional[RoomKind]:
        """
        Get the kind of a room.

        Args:
            room_id: The room ID to look up

        Returns:
            The RoomKind if the room exists, None otherwise
        """
        room = self._rooms.get(room_id)
        return room.kind if room else None

    def register(self, room_id: str, kind: RoomKind, creator_id: str) -> Room:
        """
        Register a new room.

        Args:
            room_id: ID for the new room
            kind: Kind of the room
            creator_id: Connection id of the creator

        Returns:
            The registered Room

        Raises:
            RoomExistsError: If the room id is already registered
        """
        if room_id in self._rooms:
            raise RoomExistsError(f"Room {room_id} already exists")

        room = Room(
            room_id=room_id,
            kind=kind,
            creator_id=creator_id,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._rooms[room_id] = room
        logger.info(
            f"Registered {kind.value} room {room_id} created by {creator_id}"
        )
        return room

    def unregister(self, room_id: str) -> bool:
        """
        Remove a room.

        Returns:
            True if the room was removed, False if it was not registered
        """
        if self._rooms.pop(room_id, None) is None:
            return False
        logger.info(f"Cleaned up empty room: {room_id}")
        return True

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def list_rooms(self) -> List[Dict]:
        return [room.to_dict() for room in self._rooms.values()]

    def get_room_count(self) -> int:
        return len(self._rooms)

    def generate_room_id(self) -> str:
        """Generate a room id that is not currently registered."""
        room_id = generate_room_id()
        while room_id in self._rooms:
            room_id = generate_room_id()
        return room_id
