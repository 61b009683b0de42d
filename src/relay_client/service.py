"""
Client Service for the Ephemeral Room Relay

This module provides the client service class that talks to the relay:
WebSocket for room events, HTTP for file uploads.

Architecture:
    - Uses WebSocket for real-time bidirectional communication
    - Supports dependency injection for the network layer (for testability)
    - Async/await pattern for non-blocking I/O operations
"""

import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Callable, Optional

import httpx
import websockets

from relay.errors import InvalidPayloadError
from relay.room_state import RoomKind
from relay.schemas import (
    ChatMessageRequest,
    ConnectedEvent,
    CreateRoomRequest,
    ErrorEvent,
    JoinRoomRequest,
    JoinSuccessEvent,
    LeaveRoomRequest,
    MessageSeenRequest,
    OutboundEvent,
    RoomCreatedEvent,
    RoomFullEvent,
    RoomNotFoundEvent,
    RoomTypeMismatchEvent,
    TypingRequest,
    parse_outbound,
)

logger = logging.getLogger(__name__)

MAX_RESPONSE_ATTEMPTS = 10

REJECTION_EVENTS = (
    RoomTypeMismatchEvent,
    RoomFullEvent,
    RoomNotFoundEvent,
    ErrorEvent,
)


class JoinRejectedError(Exception):
    """
    The relay refused a join or create request.

    Attributes:
        event: The rejection event the relay sent
    """

    def __init__(self, event: OutboundEvent):
        super().__init__(f"Join rejected: {event.message_type}")
        self.event = event


class ClientService:
    """
    Client for the relay.

    Attributes:
        ws_url: WebSocket URL of the relay (e.g., ws://localhost:8080)
        http_url: Base URL of the relay's HTTP server
        websocket: Active WebSocket connection (None if not connected)
        connection_id: Id the relay assigned to this connection
    """

    def __init__(
        self,
        ws_url: str,
        http_url: Optional[str] = None,
        websocket_factory: Optional[Callable] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client service.

        Args:
            ws_url: WebSocket URL of the relay
            http_url: Base URL for uploads (e.g., http://localhost:3001)
            websocket_factory: Optional factory for creating WebSocket
                             connections (for dependency injection/testing)
            http_client: Optional httpx client used for uploads
        """
        self.ws_url = ws_url
        self.http_url = http_url.rstrip("/") if http_url else None
        self.websocket = None
        self.connection_id: Optional[str] = None
        self._websocket_factory = websocket_factory or websockets.connect
        self._http_client = http_client
        self._event_handler: Optional[Callable[[OutboundEvent], None]] = None
        self._connected = False

    async def connect(self) -> None:
        """
        Connect to the relay and read the assigned connection id.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            logger.info(f"Connecting to {self.ws_url}...")
            self.websocket = await self._websocket_factory(self.ws_url)
            self._connected = True
        except Exception as e:
            logger.error(f"Failed to connect to relay: {e}")
            raise ConnectionError(f"Could not connect to {self.ws_url}: {e}")

        event = await self._wait_for((ConnectedEvent,))
        self.connection_id = event.connection_id
        logger.info(f"Connected as {self.connection_id}")

    async def disconnect(self) -> None:
        """Close the WebSocket connection."""
        if self.websocket:
            if hasattr(self.websocket, "close"):
                await self.websocket.close()
            self.websocket = None
            self._connected = False
            logger.info("Disconnected from relay")

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to the relay."""
        return self._connected and self.websocket is not None

    async def join_room(
        self, room_id: str, username: str, room_type: RoomKind = RoomKind.GROUP
    ) -> str:
        """
        Join a room, creating it if the relay allows.

        Args:
            room_id: ID of the room to join
            username: Display name to use
            room_type: Kind of room expected

        Returns:
            The joined room id

        Raises:
            ConnectionError: If not connected
            JoinRejectedError: If the relay rejected the join
        """
        self._require_connection()
        logger.info(f"Sending join-room request for room '{room_id}'")

        request = JoinRoomRequest(room_id, username, room_type)
        await self.websocket.send(request.to_json())

        event = await self._wait_for((JoinSuccessEvent,) + REJECTION_EVENTS)
        if not isinstance(event, JoinSuccessEvent):
            raise JoinRejectedError(event)
        return event.room_id

    async def create_room(
        self, username: str, room_type: RoomKind = RoomKind.GROUP
    ) -> str:
        """
        Create a room with a relay-generated id.

        Returns:
            The new room id
        """
        self._require_connection()

        request = CreateRoomRequest(username, room_type)
        await self.websocket.send(request.to_json())

        event = await self._wait_for((RoomCreatedEvent,) + REJECTION_EVENTS)
        if not isinstance(event, RoomCreatedEvent):
            raise JoinRejectedError(event)
        logger.info(f"Created {room_type.value} room {event.room_id}")
        return event.room_id

    async def leave_room(self, room_id: str) -> None:
        """Leave a room (fire-and-forget)."""
        self._require_connection()
        await self.websocket.send(LeaveRoomRequest(room_id).to_json())

    async def send_message(
        self, room_id: str, message: str, message_id: Optional[str] = None
    ) -> str:
        """
        Send a chat message (fire-and-forget).

        Returns:
            The message id, generated if not given
        """
        self._require_connection()
        message_id = message_id or uuid.uuid4().hex
        request = ChatMessageRequest(room_id, message, message_id)
        await self.websocket.send(request.to_json())
        return message_id

    async def set_typing(self, room_id: str, is_typing: bool) -> None:
        self._require_connection()
        await self.websocket.send(TypingRequest(room_id, is_typing).to_json())

    async def mark_seen(self, room_id: str, message_id: str) -> None:
        self._require_connection()
        await self.websocket.send(MessageSeenRequest(room_id, message_id).to_json())

    async def upload_file(
        self, room_id: str, file_path: str, temp_id: Optional[str] = None
    ) -> dict:
        """
        Upload a file and share it into a room.

        Args:
            room_id: Room the file is shared in
            file_path: Local path of the file
            temp_id: Optional token echoed in the file-shared event

        Returns:
            The stored file's descriptor

        Raises:
            ValueError: If no HTTP URL was configured
            httpx.HTTPStatusError: If the relay rejected the upload
        """
        if not self.http_url:
            raise ValueError("No HTTP URL configured for uploads")

        path = Path(file_path)
        mimetype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        form = {"roomId": room_id, "senderId": self.connection_id or ""}
        if temp_id:
            form["tempId"] = temp_id

        client = self._http_client or httpx.AsyncClient()
        try:
            with open(path, "rb") as f:
                response = await client.post(
                    f"{self.http_url}/upload",
                    data=form,
                    files={"file": (path.name, f, mimetype)},
                )
            response.raise_for_status()
        finally:
            if self._http_client is None:
                await client.aclose()

        logger.info(f"Uploaded {path.name} to room {room_id}")
        return response.json()

    async def handle_messages(self) -> None:
        """
        Listen for events until the connection closes.

        Events are parsed and passed to the registered handler; frames
        that cannot be parsed are logged and skipped.
        """
        self._require_connection()
        logger.info("Starting message handler loop")

        try:
            async for message in self.websocket:
                try:
                    event = parse_outbound(message)
                except InvalidPayloadError as e:
                    logger.warning(f"Skipping unreadable frame: {e}")
                    continue
                if self._event_handler:
                    self._event_handler(event)
        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection closed by relay")
            self._connected = False

    def set_event_handler(self, handler: Callable[[OutboundEvent], None]) -> None:
        """Register a callback for incoming events."""
        self._event_handler = handler

    async def _wait_for(self, event_types: tuple) -> OutboundEvent:
        # Other events (presence, chat) may arrive before the response.
        for _ in range(MAX_RESPONSE_ATTEMPTS):
            event = parse_outbound(await self.websocket.recv())
            if isinstance(event, event_types):
                return event
            logger.debug(f"Skipping {event.message_type} while waiting")
            if self._event_handler:
                self._event_handler(event)

        raise TimeoutError("Timed out waiting for relay response")

    def _require_connection(self):
        if not self.is_connected:
            raise ConnectionError("Not connected to the relay")
