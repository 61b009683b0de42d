"""
Relay Configuration

All settings come from environment variables; see RelayConfig.from_env().
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .room_state import PRIVATE_ROOM_CAPACITY

MIB = 1024 * 1024
DEFAULT_MAX_UPLOAD_MB = 50
DEFAULT_RETENTION_SECONDS = 10 * 60

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_positive_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number}")
    return number


def _parse_private_capacity(value: str) -> int:
    capacity = _parse_positive_int("PRIVATE_ROOM_CAPACITY", value)
    if capacity > PRIVATE_ROOM_CAPACITY:
        raise ValueError(
            f"PRIVATE_ROOM_CAPACITY must be at most {PRIVATE_ROOM_CAPACITY}, "
            f"got {capacity}"
        )
    return capacity


@dataclass
class RelayConfig:
    """
    Runtime settings for the relay.

    Attributes:
        ws_host: WebSocket host address to bind to
        ws_port: WebSocket port to listen on
        http_host: HTTP (upload/static) host address to bind to
        http_port: HTTP port to listen on
        upload_dir: Directory uploaded files are stored in
        max_upload_bytes: Size cap for a single upload
        retention_seconds: How long an uploaded file stays retrievable
            before it is deleted. Clients may fetch the file any time
            between the file-shared event and expiry.
        auto_create_rooms: Register unknown rooms on join instead of
            rejecting with room-not-found
        private_room_capacity: Maximum members of a private room (1 or 2)
        log_level: Root logging level
    """

    ws_host: str = "0.0.0.0"
    ws_port: int = 8080
    http_host: str = "0.0.0.0"
    http_port: int = 3001
    upload_dir: str = "uploads"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_MB * MIB
    retention_seconds: int = DEFAULT_RETENTION_SECONDS
    auto_create_rooms: bool = True
    private_room_capacity: int = PRIVATE_ROOM_CAPACITY
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            ValueError: If a numeric or boolean variable is malformed
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            ws_host=env.get("WEBSOCKET_HOST", defaults.ws_host),
            ws_port=_parse_positive_int(
                "WEBSOCKET_PORT", env.get("WEBSOCKET_PORT", str(defaults.ws_port))
            ),
            http_host=env.get("HTTP_HOST", defaults.http_host),
            http_port=_parse_positive_int(
                "HTTP_PORT", env.get("HTTP_PORT", str(defaults.http_port))
            ),
            upload_dir=env.get("UPLOAD_DIR", defaults.upload_dir),
            max_upload_bytes=_parse_positive_int(
                "MAX_UPLOAD_MB",
                env.get("MAX_UPLOAD_MB", str(DEFAULT_MAX_UPLOAD_MB)),
            )
            * MIB,
            retention_seconds=_parse_positive_int(
                "FILE_RETENTION_SECONDS",
                env.get("FILE_RETENTION_SECONDS", str(defaults.retention_seconds)),
            ),
            auto_create_rooms=_parse_bool(
                "AUTO_CREATE_ROOMS", env.get("AUTO_CREATE_ROOMS", "true")
            ),
            private_room_capacity=_parse_private_capacity(
                env.get(
                    "PRIVATE_ROOM_CAPACITY", str(defaults.private_room_capacity)
                ),
            ),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )
