"""
WebSocket Server for the Relay

Accepts client connections, turns inbound frames into membership and
routing calls, and runs the leave sweep when a connection closes.
"""

import logging
import uuid
from typing import Optional

import websockets

from .errors import InvalidPayloadError, RoomRejection
from .membership import MembershipManager
from .registry import ConnectionRegistry
from .router import EventRouter
from .schemas import (
    ChatMessageRequest,
    ConnectedEvent,
    CreateRoomRequest,
    ErrorEvent,
    JoinRoomRequest,
    LeaveRoomRequest,
    MessageSeenRequest,
    TypingRequest,
    create_rejection_event,
    parse_inbound,
)

logger = logging.getLogger(__name__)


class WebSocketServer:
    """
    WebSocket server for handling client connections.

    Each connection gets a fresh id, announced to the client in a
    ``connected`` frame, which the client passes as ``senderId`` when
    uploading files.
    """

    def __init__(
        self,
        membership: MembershipManager,
        host: str,
        port: int,
    ):
        """
        Initialize the WebSocket server.

        Args:
            membership: The membership manager
            host: Host address to bind to
            port: Port to listen on
        """
        self.membership = membership
        self.registry: ConnectionRegistry = membership.registry
        self.router: EventRouter = membership.router
        self.host = host
        self.port = port
        self.server = None
        self._handlers = {
            JoinRoomRequest: self.handle_join_room,
            CreateRoomRequest: self.handle_create_room,
            LeaveRoomRequest: self.handle_leave_room,
            ChatMessageRequest: self.handle_chat_message,
            MessageSeenRequest: self.handle_message_seen,
            TypingRequest: self.handle_typing,
        }

    async def start(self):
        """Start the WebSocket server."""
        self.server = await websockets.serve(
            self.handle_client, self.host, self.port
        )
        logger.info(f"WebSocket server started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket server stopped")

    async def handle_client(self, websocket):
        """
        Handle a client connection from open to close.

        Args:
            websocket: The WebSocket connection
        """
        connection_id = await self.open_connection(websocket)

        try:
            async for message in websocket:
                await self.process_message(connection_id, message)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client {connection_id} connection closed")
        except Exception as e:
            logger.error(f"Error handling client {connection_id}: {e}")
        finally:
            await self.close_connection(connection_id)

    async def open_connection(self, websocket, connection_id: Optional[str] = None) -> str:
        """Register a new connection and tell the client its id."""
        connection_id = connection_id or str(uuid.uuid4())
        self.registry.register(connection_id, websocket)
        logger.info(f"User connected: {connection_id}")
        await self.router.send_to_connection(
            connection_id, ConnectedEvent(connection_id=connection_id)
        )
        return connection_id

    async def close_connection(self, connection_id: str):
        """Run the leave sweep for a closing connection, then forget it."""
        logger.info(f"User disconnected: {connection_id}")
        try:
            await self.membership.leave(connection_id)
        finally:
            self.registry.unregister(connection_id)

    async def process_message(self, connection_id: str, message):
        """
        Process one inbound frame.

        Rejections and invalid payloads are answered to this connection
        only; nothing here lets an exception close the connection.

        Args:
            connection_id: The sending connection
            message: The raw frame (JSON)
        """
        try:
            event = parse_inbound(message)
            logger.debug(f"Received {event.message_type} from {connection_id}")
            await self._handlers[type(event)](connection_id, event)
        except InvalidPayloadError as e:
            logger.warning(f"Invalid payload from {connection_id}: {e}")
            await self.send_error(connection_id, e.error_code, str(e))
        except RoomRejection as e:
            await self.router.send_to_connection(
                connection_id, create_rejection_event(e)
            )
        except Exception as e:
            logger.error(f"Error processing message from {connection_id}: {e}")
            await self.send_error(connection_id, "INTERNAL_ERROR", "Internal server error")

    async def handle_join_room(self, connection_id: str, event: JoinRoomRequest):
        await self.membership.request_join(
            connection_id, event.room_id, event.room_type, event.username
        )

    async def handle_create_room(self, connection_id: str, event: CreateRoomRequest):
        await self.membership.create_room(
            connection_id, event.room_type, event.username
        )

    async def handle_leave_room(self, connection_id: str, event: LeaveRoomRequest):
        await self.membership.leave_room(connection_id, event.room_id)

    async def handle_chat_message(
        self, connection_id: str, event: ChatMessageRequest
    ):
        self.membership.require_member(connection_id, event.room_id)
        await self.router.relay_chat_message(
            connection_id, event.room_id, event.message, event.message_id
        )

    async def handle_message_seen(
        self, connection_id: str, event: MessageSeenRequest
    ):
        self.membership.require_member(connection_id, event.room_id)
        await self.router.relay_read_receipt(
            connection_id, event.room_id, event.message_id
        )

    async def handle_typing(self, connection_id: str, event: TypingRequest):
        self.membership.require_member(connection_id, event.room_id)
        await self.router.relay_typing(connection_id, event.room_id, event.is_typing)

    async def send_error(self, connection_id: str, error_code: str, message: str):
        """Send an error event to one connection."""
        await self.router.send_to_connection(
            connection_id, ErrorEvent(error_code=error_code, message=message)
        )
