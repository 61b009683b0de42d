"""
Ephemeral Room Relay Package

This package provides the relay server: room directory and membership
state, event routing, ephemeral attachments, and the WebSocket and HTTP
transports around them.
"""

from .room_state import RoomDirectory, Room, RoomKind, generate_room_id
from .registry import ConnectionRegistry, Session
from .router import EventRouter
from .membership import (
    MembershipManager,
    JoinResult,
    LeaveResult,
    PRIVATE_ROOM_CAPACITY,
)
from .attachments import AttachmentNotifier, BlobDescriptor, BlobStore
from .config import RelayConfig
from .errors import (
    RelayError,
    RoomRejection,
    KindMismatchError,
    RoomFullError,
    RoomNotFoundError,
    NotMemberError,
    InvalidPayloadError,
    RoomExistsError,
    RoomInvariantError,
    UploadError,
    UploadTooLargeError,
)
from .websocket_server import WebSocketServer

__all__ = [
    "RoomDirectory",
    "Room",
    "RoomKind",
    "generate_room_id",
    "ConnectionRegistry",
    "Session",
    "EventRouter",
    "MembershipManager",
    "JoinResult",
    "LeaveResult",
    "PRIVATE_ROOM_CAPACITY",
    "AttachmentNotifier",
    "BlobDescriptor",
    "BlobStore",
    "RelayConfig",
    "RelayError",
    "RoomRejection",
    "KindMismatchError",
    "RoomFullError",
    "RoomNotFoundError",
    "NotMemberError",
    "InvalidPayloadError",
    "RoomExistsError",
    "RoomInvariantError",
    "UploadError",
    "UploadTooLargeError",
    "WebSocketServer",
]
