"""
Relay Error Types

Rejections are reported to the requesting connection only and never
broadcast. Everything else here is either a boundary fault (bad payload,
failed upload) or a defect (invariant violation).
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""


class RoomRejection(RelayError):
    """
    A join/create/leave request that was refused without changing state.

    Attributes:
        room_id: The room the request targeted
        event_type: Outbound event name reported to the requester
    """

    event_type = "error"

    def __init__(self, room_id: str, message: str):
        super().__init__(message)
        self.room_id = room_id


class KindMismatchError(RoomRejection):
    """The room exists with a different kind than the one requested."""

    event_type = "room-type-mismatch"

    def __init__(self, room_id: str, existing_kind, attempted_kind):
        super().__init__(
            room_id,
            f"Room {room_id} is {existing_kind.value}, "
            f"not {attempted_kind.value}",
        )
        self.existing_kind = existing_kind
        self.attempted_kind = attempted_kind


class RoomFullError(RoomRejection):
    """A private room already holds its maximum number of members."""

    event_type = "room-full"

    def __init__(self, room_id: str, capacity: int):
        super().__init__(room_id, f"Room {room_id} is full ({capacity} members)")
        self.capacity = capacity


class RoomNotFoundError(RoomRejection):
    """The room does not exist and rooms are not created on join."""

    event_type = "room-not-found"

    def __init__(self, room_id: str):
        super().__init__(room_id, f"Room {room_id} not found")


class NotMemberError(RoomRejection):
    """The connection tried to act on a room it does not belong to."""

    event_type = "error"
    error_code = "NOT_MEMBER"

    def __init__(self, room_id: str, connection_id: str):
        super().__init__(
            room_id, f"Connection {connection_id} is not in room {room_id}"
        )
        self.connection_id = connection_id


class InvalidPayloadError(RelayError):
    """An inbound frame could not be parsed or failed validation."""

    def __init__(self, message: str, error_code: str = "INVALID_PAYLOAD"):
        super().__init__(message)
        self.error_code = error_code


class RoomExistsError(RelayError):
    """A room id was registered twice."""


class RoomInvariantError(RelayError):
    """Room state disagrees with membership state. Always a bug."""


class UploadError(RelayError):
    """Storing an uploaded file failed."""


class UploadTooLargeError(UploadError):
    """The uploaded file exceeds the configured size cap."""

    def __init__(self, limit: int, filename: Optional[str] = None):
        super().__init__(f"File too large (max {limit} bytes)")
        self.limit = limit
        self.filename = filename
