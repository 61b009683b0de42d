"""
Room Lifecycle & Membership Manager

Implements create, join, leave and the disconnect sweep on top of the
room directory and connection registry, and enforces the room
invariants:

- a room is registered iff it has at least one member
- a room's kind never changes and every join must match it
- a private room never holds more than ``private_room_capacity`` members

Concurrency:
    Each state transition (checks plus mutations) runs under one
    re-entrant lock and contains no ``await``. On the asyncio event loop
    that already makes it atomic; the lock keeps it atomic when the
    manager is called from worker threads as well. Notifications are sent
    after the transition, to the audience captured inside it.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List

from .errors import (
    InvalidPayloadError,
    KindMismatchError,
    NotMemberError,
    RoomFullError,
    RoomNotFoundError,
)
from .registry import ConnectionRegistry
from .room_state import PRIVATE_ROOM_CAPACITY, RoomDirectory, RoomKind
from .router import EventRouter
from .schemas import (
    JoinSuccessEvent,
    RoomCreatedEvent,
    UserJoinedEvent,
    UserLeftEvent,
)

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    """
    Outcome of a successful join or create.

    Attributes:
        room_id: The room joined
        kind: The room's kind
        created: True if this call registered the room
        rejoined: True if the connection was already a member
        notified: Connections that were sent user-joined
    """

    room_id: str
    kind: RoomKind
    created: bool = False
    rejoined: bool = False
    notified: List[str] = field(default_factory=list)


@dataclass
class LeaveResult:
    """
    Outcome of one connection leaving one room.

    Attributes:
        room_id: The room left
        username: Display name attributed in user-left
        audience: Members remaining after the leave (user-left recipients)
        room_closed: True if the room was unregistered because it emptied
    """

    room_id: str
    username: str
    audience: List[str]
    room_closed: bool


class MembershipManager:
    """
    Applies room lifecycle requests and emits presence events.

    Rejections are raised as RoomRejection subclasses without any state
    change; reporting them to the requester is the caller's job.
    """

    def __init__(
        self,
        directory: RoomDirectory,
        registry: ConnectionRegistry,
        router: EventRouter,
        auto_create_rooms: bool = True,
        private_room_capacity: int = PRIVATE_ROOM_CAPACITY,
    ):
        """
        Initialize the membership manager.

        Args:
            directory: The room directory
            registry: The connection registry
            router: Router used for presence and success events
            auto_create_rooms: Register unknown rooms on join. When False,
                joining an unknown room is rejected with RoomNotFoundError
            private_room_capacity: Maximum members of a private room,
                at most PRIVATE_ROOM_CAPACITY

        Raises:
            ValueError: If private_room_capacity is outside 1..PRIVATE_ROOM_CAPACITY
        """
        if not 1 <= private_room_capacity <= PRIVATE_ROOM_CAPACITY:
            raise ValueError(
                f"private_room_capacity must be between 1 and "
                f"{PRIVATE_ROOM_CAPACITY}, got {private_room_capacity}"
            )
        self.directory = directory
        self.registry = registry
        self.router = router
        self.auto_create_rooms = auto_create_rooms
        self.private_room_capacity = private_room_capacity
        self._lock = threading.RLock()

    async def request_join(
        self,
        connection_id: str,
        room_id: str,
        kind: RoomKind,
        display_name: str,
    ) -> JoinResult:
        """
        Join a room, registering it first if it does not exist.

        Args:
            connection_id: The joining connection
            room_id: Room to join
            kind: Kind the caller expects
            display_name: Name to use from now on

        Returns:
            JoinResult describing the join

        Raises:
            RoomNotFoundError: Room absent and auto-create disabled
            KindMismatchError: Room exists with another kind
            RoomFullError: Private room already at capacity
        """
        with self._lock:
            result = self._apply_join(connection_id, room_id, kind, display_name)

        if result.notified:
            await self.router.send_to_members(
                result.notified, UserJoinedEvent(username=display_name)
            )
        await self.router.send_to_connection(
            connection_id, JoinSuccessEvent(room_id=room_id)
        )
        logger.info(f"User {display_name} joined {kind.value} room {room_id}")
        return result

    async def create_room(
        self, connection_id: str, kind: RoomKind, display_name: str
    ) -> JoinResult:
        """
        Create a room with a generated id and join it.

        Returns:
            JoinResult for the new room
        """
        with self._lock:
            self._require_connection(connection_id)
            room_id = self.directory.generate_room_id()
            self.directory.register(room_id, kind, connection_id)
            self.registry.add_membership(connection_id, room_id)
            self.registry.set_display_name(connection_id, display_name)

        await self.router.send_to_connection(
            connection_id, RoomCreatedEvent(room_id=room_id)
        )
        logger.info(f"User {display_name} created {kind.value} room: {room_id}")
        return JoinResult(room_id=room_id, kind=kind, created=True)

    async def leave_room(self, connection_id: str, room_id: str) -> LeaveResult:
        """
        Leave one room.

        Raises:
            NotMemberError: If the connection is not in the room
        """
        with self._lock:
            if not self.registry.is_member(connection_id, room_id):
                raise NotMemberError(room_id, connection_id)
            result = self._apply_leave(connection_id, room_id)

        await self._announce_departure(result)
        return result

    async def leave(self, connection_id: str) -> List[LeaveResult]:
        """
        Remove a connection from every room it belongs to.

        Called when the connection is going away. Rooms left empty are
        unregistered; the remaining members of the others get user-left.
        A room id equal to the connection's own id is never treated as a
        room.

        Returns:
            One LeaveResult per room left
        """
        with self._lock:
            results = [
                self._apply_leave(connection_id, room_id)
                for room_id in self.registry.rooms_of(connection_id)
                if room_id != connection_id
            ]

        for result in results:
            await self._announce_departure(result)
        return results

    def require_member(self, connection_id: str, room_id: str):
        """
        Raises:
            NotMemberError: If the connection is not in the room
        """
        if not self.registry.is_member(connection_id, room_id):
            raise NotMemberError(room_id, connection_id)

    def member_count(self, room_id: str) -> int:
        return self.registry.member_count(room_id)

    def _apply_join(
        self,
        connection_id: str,
        room_id: str,
        kind: RoomKind,
        display_name: str,
    ) -> JoinResult:
        self._require_connection(connection_id)
        if room_id == connection_id:
            raise InvalidPayloadError(
                "roomId cannot be the connection's own id", "INVALID_ROOM_ID"
            )

        existing_kind = self.directory.kind_of(room_id)
        created = False
        rejoined = False

        if existing_kind is None:
            if not self.auto_create_rooms:
                logger.warning(f"Join rejected: room {room_id} not found")
                raise RoomNotFoundError(room_id)
            self.directory.register(room_id, kind, connection_id)
            created = True
        elif existing_kind != kind:
            logger.warning(
                f"Join rejected: room {room_id} is {existing_kind.value}, "
                f"{connection_id} asked for {kind.value}"
            )
            raise KindMismatchError(room_id, existing_kind, kind)
        else:
            rejoined = self.registry.is_member(connection_id, room_id)
            if (
                not rejoined
                and kind == RoomKind.PRIVATE
                and self.registry.member_count(room_id)
                >= self.private_room_capacity
            ):
                logger.warning(f"Join rejected: room {room_id} is full")
                raise RoomFullError(room_id, self.private_room_capacity)

        self.registry.add_membership(connection_id, room_id)
        self.registry.set_display_name(connection_id, display_name)

        notified = []
        if not rejoined:
            notified = [
                member
                for member in self.registry.members_of(room_id)
                if member != connection_id
            ]
        return JoinResult(
            room_id=room_id,
            kind=kind,
            created=created,
            rejoined=rejoined,
            notified=notified,
        )

    def _apply_leave(self, connection_id: str, room_id: str) -> LeaveResult:
        # Audience is the pre-leave membership minus the leaver.
        audience = [
            member
            for member in self.registry.members_of(room_id)
            if member != connection_id
        ]
        username = self.registry.display_name_of(connection_id)
        self.registry.remove_membership(connection_id, room_id)

        room_closed = False
        if self.registry.member_count(room_id) == 0:
            room_closed = self.directory.unregister(room_id)
        return LeaveResult(
            room_id=room_id,
            username=username,
            audience=audience,
            room_closed=room_closed,
        )

    async def _announce_departure(self, result: LeaveResult):
        if result.audience:
            await self.router.send_to_members(
                result.audience, UserLeftEvent(username=result.username)
            )
        logger.info(
            f"User {result.username} left room {result.room_id} "
            f"({len(result.audience)} remaining)"
        )

    def _require_connection(self, connection_id: str):
        if not self.registry.is_connected(connection_id):
            raise KeyError(f"Unknown connection {connection_id}")
