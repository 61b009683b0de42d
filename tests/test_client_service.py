"""
Tests for Client Service

Drives ClientService against a scripted WebSocket and a mocked HTTP
transport.
"""

import json

import httpx
import pytest

from relay import RoomKind
from relay.schemas import (
    ChatMessageEvent,
    ConnectedEvent,
    ErrorEvent,
    FileSharedEvent,
    JoinSuccessEvent,
    RoomCreatedEvent,
    RoomFullEvent,
    TypingEvent,
    UserJoinedEvent,
)
from relay_client import ClientService, JoinRejectedError
from relay_client.main import format_event, parse_args


class MockWebSocket:
    """Socket that records sends and replays queued frames on recv()."""

    def __init__(self, incoming=None):
        self.sent_messages = []
        self.incoming = list(incoming or [])
        self.closed = False

    async def send(self, message):
        self.sent_messages.append(json.loads(message))

    async def recv(self):
        return self.incoming.pop(0)

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.incoming:
            raise StopAsyncIteration
        return self.incoming.pop(0)


def make_service(websocket, **kwargs):
    async def factory(url):
        return websocket

    return ClientService("ws://relay:8080", websocket_factory=factory, **kwargs)


@pytest.fixture
def websocket():
    return MockWebSocket([ConnectedEvent(connection_id="conn-1").to_json()])


def test_client_service_starts_disconnected():
    service = ClientService("ws://localhost:8080", http_url="http://localhost:3001/")
    assert service.ws_url == "ws://localhost:8080"
    assert service.http_url == "http://localhost:3001"
    assert not service.is_connected


@pytest.mark.asyncio
async def test_connect_reads_connection_id(websocket):
    service = make_service(websocket)

    await service.connect()

    assert service.is_connected
    assert service.connection_id == "conn-1"


@pytest.mark.asyncio
async def test_connect_failure_raises_connection_error():
    async def refuse(url):
        raise OSError("refused")

    service = ClientService("ws://relay:8080", websocket_factory=refuse)

    with pytest.raises(ConnectionError):
        await service.connect()
    assert not service.is_connected


@pytest.mark.asyncio
async def test_join_room_success(websocket):
    service = make_service(websocket)
    await service.connect()
    websocket.incoming.append(JoinSuccessEvent(room_id="abc123").to_json())

    room_id = await service.join_room("abc123", "alice", RoomKind.PRIVATE)

    assert room_id == "abc123"
    assert websocket.sent_messages == [
        {
            "type": "join-room",
            "data": {"roomId": "abc123", "username": "alice", "roomType": "private"},
        }
    ]


@pytest.mark.asyncio
async def test_join_room_rejected(websocket):
    service = make_service(websocket)
    await service.connect()
    websocket.incoming.append(RoomFullEvent(room_id="pair").to_json())

    with pytest.raises(JoinRejectedError) as excinfo:
        await service.join_room("pair", "carol", RoomKind.PRIVATE)

    assert isinstance(excinfo.value.event, RoomFullEvent)


@pytest.mark.asyncio
async def test_events_before_response_go_to_handler(websocket):
    service = make_service(websocket)
    seen = []
    service.set_event_handler(seen.append)
    await service.connect()
    websocket.incoming.extend(
        [
            UserJoinedEvent(username="bob").to_json(),
            RoomCreatedEvent(room_id="new-room").to_json(),
        ]
    )

    room_id = await service.create_room("alice")

    assert room_id == "new-room"
    assert [event.message_type for event in seen] == ["user-joined"]


@pytest.mark.asyncio
async def test_send_message_generates_message_id(websocket):
    service = make_service(websocket)
    await service.connect()

    message_id = await service.send_message("abc123", "hi")

    sent = websocket.sent_messages[-1]
    assert sent["type"] == "chat-message"
    assert sent["data"] == {"roomId": "abc123", "message": "hi", "messageId": message_id}


@pytest.mark.asyncio
async def test_typing_and_seen_frames(websocket):
    service = make_service(websocket)
    await service.connect()

    await service.set_typing("abc123", True)
    await service.mark_seen("abc123", "m1")
    await service.leave_room("abc123")

    assert [m["type"] for m in websocket.sent_messages] == [
        "typing",
        "message-seen",
        "leave-room",
    ]


@pytest.mark.asyncio
async def test_send_requires_connection():
    service = ClientService("ws://relay:8080")
    with pytest.raises(ConnectionError):
        await service.send_message("abc123", "hi")


@pytest.mark.asyncio
async def test_handle_messages_skips_unreadable_frames(websocket):
    service = make_service(websocket)
    seen = []
    service.set_event_handler(seen.append)
    await service.connect()
    websocket.incoming.extend(
        ["garbage", TypingEvent(sender_name="bob", is_typing=True).to_json()]
    )

    await service.handle_messages()

    assert len(seen) == 1
    assert isinstance(seen[0], TypingEvent)


@pytest.mark.asyncio
async def test_upload_file_posts_multipart(websocket, tmp_path):
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["body"] = request.read()
        return httpx.Response(200, json={"filename": "1-notes.txt", "size": 5})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = make_service(
        websocket, http_url="http://relay:3001", http_client=http_client
    )
    await service.connect()
    path = tmp_path / "notes.txt"
    path.write_bytes(b"hello")

    descriptor = await service.upload_file("abc123", str(path), temp_id="t1")

    assert descriptor == {"filename": "1-notes.txt", "size": 5}
    assert captured["url"] == "http://relay:3001/upload"
    assert b'name="roomId"' in captured["body"]
    assert b"conn-1" in captured["body"]
    assert b"hello" in captured["body"]
    await http_client.aclose()


@pytest.mark.asyncio
async def test_upload_without_http_url_fails(websocket, tmp_path):
    service = make_service(websocket)
    await service.connect()

    with pytest.raises(ValueError):
        await service.upload_file("abc123", str(tmp_path / "a.txt"))


@pytest.mark.asyncio
async def test_disconnect_closes_socket(websocket):
    service = make_service(websocket)
    await service.connect()

    await service.disconnect()

    assert websocket.closed
    assert not service.is_connected


def test_format_event():
    assert (
        format_event(
            ChatMessageEvent(
                message="hi", message_id="m1", sender_id="Y", sender_name="bob"
            )
        )
        == "<bob> hi"
    )
    assert format_event(UserJoinedEvent(username="bob")) == "* bob joined"
    assert format_event(ErrorEvent(error_code="NOT_MEMBER", message="no")) == (
        "! NOT_MEMBER: no"
    )
    shared = FileSharedEvent(
        filename="1-a.txt",
        originalname="a.txt",
        mimetype="text/plain",
        size=3,
        path="/uploads/1-a.txt",
        sender_id="X",
        sender_name="alice",
    )
    assert "alice shared a.txt" in format_event(shared)


def test_parse_args_defaults():
    args = parse_args(["--username", "alice"])
    assert args.url == "ws://localhost:8080"
    assert args.username == "alice"
