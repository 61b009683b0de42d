"""
Event Router

Delivers outbound events to a room (with or without the sender) or to a
single connection. Sender attribution is read from the connection
registry when the event is dispatched, so a display name changed before
delivery is the one recipients see.
"""

import logging
from typing import Iterable, Optional

import websockets

from .errors import RoomInvariantError
from .registry import ConnectionRegistry
from .room_state import RoomDirectory
from .schemas import (
    BaseEvent,
    ChatMessageEvent,
    FileSharedEvent,
    ReadReceiptEvent,
    TypingEvent,
)

logger = logging.getLogger(__name__)


class EventRouter:
    """Routes outbound events to the right audience."""

    def __init__(self, directory: RoomDirectory, registry: ConnectionRegistry):
        """
        Initialize the router.

        Args:
            directory: Room directory, used to assert the room exists
            registry: Connection registry for audiences and sender names
        """
        self.directory = directory
        self.registry = registry

    async def send_to_connection(self, connection_id: str, event: BaseEvent) -> bool:
        """
        Send an event to one connection.

        Returns:
            True if the event was handed to the transport, False if the
            connection is gone or its socket closed
        """
        session = self.registry.get(connection_id)
        if session is None:
            logger.debug(
                f"Dropping {event.message_type} for unknown connection "
                f"{connection_id}"
            )
            return False
        return await self._deliver(session.transport, connection_id, event.to_json())

    async def send_to_room_excluding(
        self, sender_id: str, room_id: str, event: BaseEvent
    ) -> int:
        """
        Broadcast an event to every member of a room except the sender.

        Returns:
            Number of connections the event was delivered to
        """
        audience = [
            member for member in self._audience(room_id) if member != sender_id
        ]
        return await self._broadcast(audience, event)

    async def send_to_room_including(self, room_id: str, event: BaseEvent) -> int:
        """
        Broadcast an event to every member of a room.

        Used when the emitting party is not itself acting as a member,
        e.g. on behalf of an uploaded file.
        """
        return await self._broadcast(self._audience(room_id), event)

    async def send_to_members(
        self, members: Iterable[str], event: BaseEvent
    ) -> int:
        """Broadcast to an audience captured earlier by the caller."""
        return await self._broadcast(list(members), event)

    async def relay_chat_message(
        self, sender_id: str, room_id: str, message: str, message_id: str
    ) -> int:
        event = ChatMessageEvent(
            message=message,
            message_id=message_id,
            sender_id=sender_id,
            sender_name=self.registry.display_name_of(sender_id),
        )
        return await self.send_to_room_excluding(sender_id, room_id, event)

    async def relay_typing(self, sender_id: str, room_id: str, is_typing: bool) -> int:
        event = TypingEvent(
            sender_name=self.registry.display_name_of(sender_id),
            is_typing=is_typing,
        )
        return await self.send_to_room_excluding(sender_id, room_id, event)

    async def relay_read_receipt(
        self, sender_id: str, room_id: str, message_id: str
    ) -> int:
        """Tell the rest of the room a message was seen, without saying by whom."""
        event = ReadReceiptEvent(message_id=message_id)
        return await self.send_to_room_excluding(sender_id, room_id, event)

    async def share_file(
        self,
        sender_id: Optional[str],
        sender_name: str,
        room_id: str,
        descriptor,
        temp_id: Optional[str] = None,
        include_sender: bool = True,
    ) -> int:
        """
        Announce a stored file to a room.

        Args:
            sender_id: Connection id the uploader claimed
            sender_name: Name to attribute the file to
            room_id: Target room
            descriptor: BlobDescriptor of the stored file
            temp_id: Optional client correlation token
            include_sender: Whether the uploader's own connection gets it too
        """
        event = FileSharedEvent(
            filename=descriptor.filename,
            originalname=descriptor.originalname,
            mimetype=descriptor.mimetype,
            size=descriptor.size,
            path=descriptor.path,
            sender_id=sender_id,
            sender_name=sender_name,
            temp_id=temp_id,
        )
        if include_sender or sender_id is None:
            return await self.send_to_room_including(room_id, event)
        return await self.send_to_room_excluding(sender_id, room_id, event)

    def _audience(self, room_id: str):
        if not self.directory.exists(room_id):
            raise RoomInvariantError(f"Broadcast to unregistered room {room_id}")
        return self.registry.members_of(room_id)

    async def _broadcast(self, audience, event: BaseEvent) -> int:
        if not audience:
            return 0

        message_json = event.to_json()
        delivered = 0
        for connection_id in audience:
            session = self.registry.get(connection_id)
            if session is None:
                continue
            if await self._deliver(session.transport, connection_id, message_json):
                delivered += 1
        logger.debug(
            f"Broadcast {event.message_type} to {delivered}/{len(audience)} "
            f"connections"
        )
        return delivered

    async def _deliver(self, transport, connection_id: str, message_json: str) -> bool:
        try:
            await transport.send(message_json)
            return True
        except websockets.exceptions.ConnectionClosed:
            logger.debug(f"Connection {connection_id} closed during send")
            return False
