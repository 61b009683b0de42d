"""
Schemas for the Relay

Closed sets of event types for each direction of the WebSocket channel.
"""

from .base import BaseEvent
from .inbound import (
    InboundEvent,
    JoinRoomRequest,
    CreateRoomRequest,
    LeaveRoomRequest,
    ChatMessageRequest,
    MessageSeenRequest,
    TypingRequest,
    parse_inbound,
)
from .outbound import (
    OutboundEvent,
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
    create_rejection_event,
    parse_outbound,
)

__all__ = [
    "BaseEvent",
    "InboundEvent",
    "JoinRoomRequest",
    "CreateRoomRequest",
    "LeaveRoomRequest",
    "ChatMessageRequest",
    "MessageSeenRequest",
    "TypingRequest",
    "parse_inbound",
    "OutboundEvent",
    "ConnectedEvent",
    "JoinSuccessEvent",
    "RoomCreatedEvent",
    "RoomTypeMismatchEvent",
    "RoomFullEvent",
    "RoomNotFoundEvent",
    "UserJoinedEvent",
    "UserLeftEvent",
    "ChatMessageEvent",
    "ReadReceiptEvent",
    "TypingEvent",
    "FileSharedEvent",
    "ErrorEvent",
    "create_rejection_event",
    "parse_outbound",
]
