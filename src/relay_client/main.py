#!/usr/bin/env python3
"""
Relay Terminal Client

Joins (or creates) a room and relays stdin lines as chat messages.

Commands:
    /upload <path>   upload a file into the room
    /quit            leave and exit
"""

import argparse
import asyncio
import logging
import sys

from relay.room_state import RoomKind
from relay.schemas import (
    ChatMessageEvent,
    ErrorEvent,
    FileSharedEvent,
    ReadReceiptEvent,
    TypingEvent,
    UserJoinedEvent,
    UserLeftEvent,
)

from .service import ClientService, JoinRejectedError

logger = logging.getLogger(__name__)


def format_event(event) -> str:
    """Render an incoming event as one terminal line."""
    if isinstance(event, ChatMessageEvent):
        return f"<{event.sender_name}> {event.message}"
    if isinstance(event, UserJoinedEvent):
        return f"* {event.username} joined"
    if isinstance(event, UserLeftEvent):
        return f"* {event.username} left"
    if isinstance(event, TypingEvent):
        state = "is typing..." if event.is_typing else "stopped typing"
        return f"* {event.sender_name} {state}"
    if isinstance(event, ReadReceiptEvent):
        return f"* seen: {event.message_id}"
    if isinstance(event, FileSharedEvent):
        return (
            f"* {event.sender_name} shared {event.originalname} "
            f"({event.size} bytes) at {event.path}"
        )
    if isinstance(event, ErrorEvent):
        return f"! {event.error_code}: {event.message}"
    return f"* {event.message_type}"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Ephemeral room relay client")
    parser.add_argument("--url", default="ws://localhost:8080", help="relay WebSocket URL")
    parser.add_argument("--http-url", default="http://localhost:3001", help="relay HTTP URL")
    parser.add_argument("--username", required=True)
    parser.add_argument("--room", help="room id to join; omit to create a new room")
    parser.add_argument(
        "--type",
        dest="room_type",
        choices=[kind.value for kind in RoomKind],
        default=RoomKind.GROUP.value,
    )
    return parser.parse_args(argv)


async def run_client(args) -> int:
    service = ClientService(args.url, args.http_url)
    service.set_event_handler(lambda event: print(format_event(event), flush=True))
    await service.connect()

    room_type = RoomKind(args.room_type)
    try:
        if args.room:
            room_id = await service.join_room(args.room, args.username, room_type)
        else:
            room_id = await service.create_room(args.username, room_type)
    except JoinRejectedError as e:
        print(f"! {format_event(e.event)}")
        await service.disconnect()
        return 1

    print(f"* joined {room_type.value} room {room_id}", flush=True)
    listener = asyncio.create_task(service.handle_messages())
    loop = asyncio.get_running_loop()

    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line.startswith("/upload "):
                try:
                    await service.upload_file(room_id, line[len("/upload "):].strip())
                except Exception as e:
                    logger.error(f"Upload failed: {e}")
                    print(f"! upload failed: {e}", flush=True)
                continue
            await service.send_message(room_id, line)
    finally:
        listener.cancel()
        await service.disconnect()
    return 0


def main():
    """Main entry point for the relay client."""
    # Log to a file so log lines do not interleave with chat output
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler("relay_client.log", mode="a")],
    )
    args = parse_args()
    try:
        sys.exit(asyncio.run(run_client(args)))
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
