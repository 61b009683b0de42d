"""
Base Schema Classes

This module provides base classes for inbound and outbound events with
common serialization and deserialization methods.

Wire format:
    {
        "type": "event-name",
        "data": { ... camelCase fields ... }
    }
"""

import json
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, Type, TypeVar

from ..errors import InvalidPayloadError

T = TypeVar("T", bound="BaseEvent")


def to_camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase wire name."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class BaseEvent:
    """
    Base class for all events.

    Subclasses are dataclasses and set the class attribute
    ``message_type`` to their wire name.
    """

    message_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary with 'type' and 'data' keys.
        """
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            data[to_camel(f.name)] = value
        return {"type": self.message_type, "data": data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from a wire dictionary.

        Accepts either the full envelope or just its 'data' part.
        """
        payload = data.get("data", data) if "type" in data else data
        if not isinstance(payload, dict):
            raise InvalidPayloadError(
                f"'{cls.message_type}' data must be an object"
            )
        return cls._from_data(payload)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def _from_data(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from the data dictionary.

        Missing keys become None; subclasses that need stricter checks
        override this.
        """
        return cls(**{f.name: data.get(to_camel(f.name)) for f in fields(cls)})
