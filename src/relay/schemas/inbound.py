"""
Inbound Event Schemas

Client -> relay events. parse_inbound() is the only way raw frames enter
the relay; anything it returns has been validated.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..errors import InvalidPayloadError
from ..room_state import RoomKind
from ..utils.validation import (
    validate_message_content,
    validate_message_id,
    validate_room_id,
    validate_username,
)
from .base import BaseEvent


def _check(result, error_code: str):
    is_valid, error_message = result
    if not is_valid:
        raise InvalidPayloadError(error_message, error_code)


def _parse_kind(value: Any) -> RoomKind:
    if value is None:
        raise InvalidPayloadError("roomType is required", "INVALID_ROOM_TYPE")
    try:
        return RoomKind(value)
    except ValueError:
        raise InvalidPayloadError(
            f"roomType must be 'private' or 'group', got {value!r}",
            "INVALID_ROOM_TYPE",
        )


@dataclass
class JoinRoomRequest(BaseEvent):
    """
    Join a room, creating it if it does not exist yet.

    Attributes:
        room_id: Room to join
        username: Display name to use in the room
        room_type: Kind the caller expects the room to be. Required on
            the wire; a missing roomType is rejected with INVALID_ROOM_TYPE
            rather than guessed.
    """

    message_type = "join-room"

    room_id: str
    username: str
    room_type: RoomKind

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "JoinRoomRequest":
        _check(validate_room_id(data.get("roomId")), "INVALID_ROOM_ID")
        _check(validate_username(data.get("username")), "INVALID_USERNAME")
        return cls(
            room_id=data["roomId"],
            username=data["username"].strip(),
            room_type=_parse_kind(data.get("roomType")),
        )


@dataclass
class CreateRoomRequest(BaseEvent):
    """Create a room with a generated id; roomType defaults to group."""

    message_type = "create-room"

    username: str
    room_type: RoomKind = RoomKind.GROUP

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "CreateRoomRequest":
        _check(validate_username(data.get("username")), "INVALID_USERNAME")
        return cls(
            username=data["username"].strip(),
            room_type=_parse_kind(data.get("roomType", RoomKind.GROUP.value)),
        )


@dataclass
class LeaveRoomRequest(BaseEvent):
    message_type = "leave-room"

    room_id: str

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "LeaveRoomRequest":
        _check(validate_room_id(data.get("roomId")), "INVALID_ROOM_ID")
        return cls(room_id=data["roomId"])


@dataclass
class ChatMessageRequest(BaseEvent):
    """
    A chat message for a room.

    Attributes:
        room_id: Target room
        message: Message text
        message_id: Client-generated id, echoed to recipients
    """

    message_type = "chat-message"

    room_id: str
    message: str
    message_id: str

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "ChatMessageRequest":
        _check(validate_room_id(data.get("roomId")), "INVALID_ROOM_ID")
        _check(validate_message_content(data.get("message")), "INVALID_MESSAGE")
        _check(validate_message_id(data.get("messageId")), "INVALID_MESSAGE_ID")
        return cls(
            room_id=data["roomId"],
            message=data["message"],
            message_id=data["messageId"],
        )


@dataclass
class MessageSeenRequest(BaseEvent):
    message_type = "message-seen"

    room_id: str
    message_id: str

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "MessageSeenRequest":
        _check(validate_room_id(data.get("roomId")), "INVALID_ROOM_ID")
        _check(validate_message_id(data.get("messageId")), "INVALID_MESSAGE_ID")
        return cls(room_id=data["roomId"], message_id=data["messageId"])


@dataclass
class TypingRequest(BaseEvent):
    message_type = "typing"

    room_id: str
    is_typing: bool

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "TypingRequest":
        _check(validate_room_id(data.get("roomId")), "INVALID_ROOM_ID")
        is_typing = data.get("isTyping")
        if not isinstance(is_typing, bool):
            raise InvalidPayloadError(
                "isTyping must be a boolean", "INVALID_TYPING_FLAG"
            )
        return cls(room_id=data["roomId"], is_typing=is_typing)


InboundEvent = Union[
    JoinRoomRequest,
    CreateRoomRequest,
    LeaveRoomRequest,
    ChatMessageRequest,
    MessageSeenRequest,
    TypingRequest,
]

INBOUND_EVENTS = {
    cls.message_type: cls
    for cls in (
        JoinRoomRequest,
        CreateRoomRequest,
        LeaveRoomRequest,
        ChatMessageRequest,
        MessageSeenRequest,
        TypingRequest,
    )
}


def parse_inbound(raw: Union[str, bytes]) -> InboundEvent:
    """
    Parse and validate one inbound frame.

    Args:
        raw: The frame as received from the socket

    Returns:
        The typed inbound event

    Raises:
        InvalidPayloadError: If the frame is not JSON, has an unknown
            type, or fails field validation
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidPayloadError("Invalid JSON format", "INVALID_JSON")

    if not isinstance(message, dict):
        raise InvalidPayloadError("Frame must be a JSON object", "INVALID_JSON")

    message_type: Optional[str] = message.get("type")
    event_cls = INBOUND_EVENTS.get(message_type)
    if event_cls is None:
        raise InvalidPayloadError(
            f"Unknown message type: {message_type}", "UNKNOWN_TYPE"
        )

    data = message.get("data", {})
    if not isinstance(data, dict):
        raise InvalidPayloadError(
            f"'{message_type}' data must be an object", "INVALID_PAYLOAD"
        )
    return event_cls._from_data(data)
