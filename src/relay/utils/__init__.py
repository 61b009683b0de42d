"""
Utilities for the Relay

This module contains utility functions for validating inbound input.
"""

from .validation import (
    validate_message_content,
    validate_message_id,
    validate_room_id,
    validate_username,
)

__all__ = [
    "validate_message_content",
    "validate_message_id",
    "validate_room_id",
    "validate_username",
]
