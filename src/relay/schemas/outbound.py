"""
Outbound Event Schemas

Relay -> client events. The relay only ever sends instances of the
classes below; clients use parse_outbound() to read them back.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..errors import (
    InvalidPayloadError,
    KindMismatchError,
    NotMemberError,
    RoomFullError,
    RoomNotFoundError,
    RoomRejection,
)
from .base import BaseEvent


@dataclass
class ConnectedEvent(BaseEvent):
    """First frame on every connection; carries the connection id."""

    message_type = "connected"

    connection_id: str


@dataclass
class JoinSuccessEvent(BaseEvent):
    message_type = "join-success"

    room_id: str


@dataclass
class RoomCreatedEvent(BaseEvent):
    message_type = "room-created"

    room_id: str


@dataclass
class RoomTypeMismatchEvent(BaseEvent):
    """
    Join rejected because the room has a different kind.

    Attributes:
        existing_type: Kind the room was created with
        attempted_type: Kind the caller asked for
    """

    message_type = "room-type-mismatch"

    existing_type: str
    attempted_type: str


@dataclass
class RoomFullEvent(BaseEvent):
    message_type = "room-full"

    room_id: str


@dataclass
class RoomNotFoundEvent(BaseEvent):
    message_type = "room-not-found"

    room_id: str


@dataclass
class UserJoinedEvent(BaseEvent):
    message_type = "user-joined"

    username: str


@dataclass
class UserLeftEvent(BaseEvent):
    message_type = "user-left"

    username: Optional[str]


@dataclass
class ChatMessageEvent(BaseEvent):
    """
    A chat message delivered to the other members of a room.

    Attributes:
        message: Message text
        message_id: Id the sender assigned, echoed for acknowledgement
        sender_id: Connection id of the sender
        sender_name: Sender's display name at dispatch time
    """

    message_type = "chat-message"

    message: str
    message_id: str
    sender_id: str
    sender_name: Optional[str]


@dataclass
class ReadReceiptEvent(BaseEvent):
    """Carries only the acknowledged message id, never who read it."""

    message_type = "read-receipt"

    message_id: str


@dataclass
class TypingEvent(BaseEvent):
    message_type = "typing"

    sender_name: Optional[str]
    is_typing: bool


@dataclass
class FileSharedEvent(BaseEvent):
    """
    A file was uploaded into a room.

    Attributes:
        filename: Stored file name
        originalname: Name the file was uploaded with
        mimetype: Media type reported by the uploader
        size: Size in bytes
        path: URL path the file can be fetched from until it expires
        sender_id: Connection id given by the uploader
        sender_name: Uploader's display name, or a placeholder
        temp_id: Optional client token matching an optimistic placeholder
    """

    message_type = "file-shared"

    filename: str
    originalname: str
    mimetype: str
    size: int
    path: str
    sender_id: Optional[str]
    sender_name: str
    temp_id: Optional[str] = None


@dataclass
class ErrorEvent(BaseEvent):
    message_type = "error"

    error_code: str
    message: str


OutboundEvent = Union[
    ConnectedEvent,
    JoinSuccessEvent,
    RoomCreatedEvent,
    RoomTypeMismatchEvent,
    RoomFullEvent,
    RoomNotFoundEvent,
    UserJoinedEvent,
    UserLeftEvent,
    ChatMessageEvent,
    ReadReceiptEvent,
    TypingEvent,
    FileSharedEvent,
    ErrorEvent,
]

OUTBOUND_EVENTS = {
    cls.message_type: cls
    for cls in (
        ConnectedEvent,
        JoinSuccessEvent,
        RoomCreatedEvent,
        RoomTypeMismatchEvent,
        RoomFullEvent,
        RoomNotFoundEvent,
        UserJoinedEvent,
        UserLeftEvent,
        ChatMessageEvent,
        ReadReceiptEvent,
        TypingEvent,
        FileSharedEvent,
        ErrorEvent,
    )
}


def create_rejection_event(error: RoomRejection) -> OutboundEvent:
    """
    Create the outbound event reporting a rejection to its requester.

    Args:
        error: The rejection raised by the membership manager

    Returns:
        The event to send to the requesting connection only
    """
    if isinstance(error, KindMismatchError):
        return RoomTypeMismatchEvent(
            existing_type=error.existing_kind.value,
            attempted_type=error.attempted_kind.value,
        )
    if isinstance(error, RoomFullError):
        return RoomFullEvent(room_id=error.room_id)
    if isinstance(error, RoomNotFoundError):
        return RoomNotFoundEvent(room_id=error.room_id)
    if isinstance(error, NotMemberError):
        return ErrorEvent(error_code=error.error_code, message=str(error))
    return ErrorEvent(error_code="REJECTED", message=str(error))


def parse_outbound(raw: Union[str, bytes, Dict[str, Any]]) -> OutboundEvent:
    """
    Parse one relay -> client frame.

    Raises:
        InvalidPayloadError: If the frame is malformed or of unknown type
    """
    if isinstance(raw, dict):
        message = raw
    else:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidPayloadError("Invalid JSON format", "INVALID_JSON")

    if not isinstance(message, dict):
        raise InvalidPayloadError("Frame must be a JSON object", "INVALID_JSON")

    event_cls = OUTBOUND_EVENTS.get(message.get("type"))
    if event_cls is None:
        raise InvalidPayloadError(
            f"Unknown message type: {message.get('type')}", "UNKNOWN_TYPE"
        )
    return event_cls.from_dict(message)
