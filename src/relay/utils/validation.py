"""
Validation Utilities

Contains utility functions for validating message content and other inputs.
"""

from typing import Any, Optional, Tuple

# Message validation constants
MAX_MESSAGE_LENGTH = 5000
MAX_USERNAME_LENGTH = 64
MAX_ROOM_ID_LENGTH = 128
MAX_MESSAGE_ID_LENGTH = 128


def validate_message_content(content: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate message content.

    Args:
        content: The message content to validate

    Returns:
        tuple: (is_valid, error_message)
            - is_valid: True if content is valid, False otherwise
            - error_message: Error message if invalid, None if valid
    """
    if not isinstance(content, str) or not content:
        return False, "Message content cannot be empty"

    if len(content) > MAX_MESSAGE_LENGTH:
        return (
            False,
            f"Message content too long (max {MAX_MESSAGE_LENGTH} characters)",
        )

    return True, None


def validate_room_id(room_id: Any) -> Tuple[bool, Optional[str]]:
    """Validate a room id: a non-empty string of bounded length."""
    if not isinstance(room_id, str) or not room_id.strip():
        return False, "roomId must be a non-empty string"

    if len(room_id) > MAX_ROOM_ID_LENGTH:
        return False, f"roomId too long (max {MAX_ROOM_ID_LENGTH} characters)"

    return True, None


def validate_username(username: Any) -> Tuple[bool, Optional[str]]:
    """Validate a display name."""
    if not isinstance(username, str) or not username.strip():
        return False, "username must be a non-empty string"

    if len(username) > MAX_USERNAME_LENGTH:
        return (
            False,
            f"username too long (max {MAX_USERNAME_LENGTH} characters)",
        )

    return True, None


def validate_message_id(message_id: Any) -> Tuple[bool, Optional[str]]:
    if not isinstance(message_id, str) or not message_id:
        return False, "messageId must be a non-empty string"

    if len(message_id) > MAX_MESSAGE_ID_LENGTH:
        return (
            False,
            f"messageId too long (max {MAX_MESSAGE_ID_LENGTH} characters)",
        )

    return True, None
