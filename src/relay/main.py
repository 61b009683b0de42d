#!/usr/bin/env python3
"""
Ephemeral Room Relay Server

Runs the WebSocket relay and the HTTP upload server on one event loop.
"""

import asyncio
import logging
import sys

from .attachments import AttachmentNotifier, BlobStore
from .config import RelayConfig
from .http_server import HTTPServer, create_app
from .membership import MembershipManager
from .registry import ConnectionRegistry
from .room_state import RoomDirectory
from .router import EventRouter
from .websocket_server import WebSocketServer

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_relay(config: RelayConfig):
    """
    Wire the relay's components together.

    Args:
        config: Runtime settings

    Returns:
        tuple: (WebSocketServer, FastAPI app, BlobStore)
    """
    directory = RoomDirectory()
    registry = ConnectionRegistry()
    router = EventRouter(directory, registry)
    membership = MembershipManager(
        directory,
        registry,
        router,
        auto_create_rooms=config.auto_create_rooms,
        private_room_capacity=config.private_room_capacity,
    )
    blob_store = BlobStore(
        config.upload_dir,
        config.max_upload_bytes,
        retention_seconds=config.retention_seconds,
    )
    notifier = AttachmentNotifier(directory, registry, router)

    ws_server = WebSocketServer(membership, config.ws_host, config.ws_port)
    app = create_app(blob_store, notifier, directory, registry)
    return ws_server, app, blob_store


async def run_server(config: RelayConfig):
    """
    Run the relay until cancelled.

    Args:
        config: Runtime settings
    """
    ws_server, app, blob_store = build_relay(config)
    http_server = HTTPServer(app, config.http_host, config.http_port, config.log_level)

    await ws_server.start()

    logger.info("Relay is ready")
    logger.info(f"WebSocket server listening on ws://{config.ws_host}:{config.ws_port}")
    logger.info(
        f"Uploads kept for {config.retention_seconds}s, "
        f"max {config.max_upload_bytes} bytes, stored in {config.upload_dir}"
    )
    if not config.auto_create_rooms:
        logger.info("Rooms must be created explicitly; unknown joins are rejected")

    try:
        await http_server.serve()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        http_server.stop()
        await blob_store.close()
        await ws_server.stop()
        logger.info("Relay stopped")


def main():
    """Main entry point for the relay server."""
    config = RelayConfig.from_env()
    configure_logging(config.log_level)
    logger.info("Starting ephemeral room relay...")

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Shutting down relay...")
        sys.exit(0)


if __name__ == "__main__":
    main()
