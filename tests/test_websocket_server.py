"""
Tests for the WebSocket Server

End-to-end scenarios through process_message with mock sockets.
"""

import json

import pytest

from conftest import MockWebSocket
from relay import MembershipManager, RoomKind, WebSocketServer
from relay.schemas import JoinRoomRequest


def frame(message_type, **data):
    return json.dumps({"type": message_type, "data": data})


async def open_socket(ws_server, connection_id):
    websocket = MockWebSocket()
    await ws_server.open_connection(websocket, connection_id=connection_id)
    websocket.clear()
    return websocket


class ScriptedWebSocket(MockWebSocket):
    """Mock socket that yields a fixed list of inbound frames, then closes."""

    def __init__(self, frames):
        super().__init__()
        self._frames = list(frames)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._frames:
            raise StopAsyncIteration
        return self._frames.pop(0)


@pytest.mark.asyncio
async def test_open_connection_announces_connection_id(ws_server, registry):
    websocket = MockWebSocket()

    connection_id = await ws_server.open_connection(websocket)

    assert registry.is_connected(connection_id)
    assert websocket.events() == [
        {"type": "connected", "data": {"connectionId": connection_id}}
    ]


@pytest.mark.asyncio
async def test_group_room_chat_scenario(ws_server, directory):
    """alice creates abc123, bob joins, bob says hi."""
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")

    await ws_server.process_message(
        "X", frame("join-room", roomId="abc123", username="alice", roomType="group")
    )
    ws_x.clear()
    await ws_server.process_message(
        "Y", frame("join-room", roomId="abc123", username="bob", roomType="group")
    )

    assert ws_x.events() == [{"type": "user-joined", "data": {"username": "bob"}}]
    assert ws_y.events() == [{"type": "join-success", "data": {"roomId": "abc123"}}]

    ws_x.clear()
    ws_y.clear()
    await ws_server.process_message(
        "Y", frame("chat-message", roomId="abc123", message="hi", messageId="m1")
    )

    assert ws_x.events() == [
        {
            "type": "chat-message",
            "data": {
                "message": "hi",
                "messageId": "m1",
                "senderId": "Y",
                "senderName": "bob",
            },
        }
    ]
    assert ws_y.sent_messages == []
    assert directory.kind_of("abc123") == RoomKind.GROUP


@pytest.mark.asyncio
async def test_private_room_full_scenario(ws_server, registry):
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")
    ws_z = await open_socket(ws_server, "Z")

    for connection_id, name in (("X", "x"), ("Y", "y")):
        await ws_server.process_message(
            connection_id,
            frame("join-room", roomId="pair", username=name, roomType="private"),
        )
    ws_x.clear()
    ws_y.clear()

    await ws_server.process_message(
        "Z", frame("join-room", roomId="pair", username="z", roomType="private")
    )

    assert ws_z.events() == [{"type": "room-full", "data": {"roomId": "pair"}}]
    assert ws_x.sent_messages == []
    assert ws_y.sent_messages == []
    assert sorted(registry.members_of("pair")) == ["X", "Y"]


@pytest.mark.asyncio
async def test_kind_mismatch_reported_to_requester_only(ws_server):
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")
    await ws_server.process_message(
        "X", frame("join-room", roomId="room", username="x", roomType="group")
    )
    ws_x.clear()

    await ws_server.process_message(
        "Y", frame("join-room", roomId="room", username="y", roomType="private")
    )

    assert ws_y.events() == [
        {
            "type": "room-type-mismatch",
            "data": {"existingType": "group", "attemptedType": "private"},
        }
    ]
    assert ws_x.sent_messages == []


@pytest.mark.asyncio
async def test_strict_mode_room_not_found(directory, registry, router):
    strict = MembershipManager(directory, registry, router, auto_create_rooms=False)
    ws_server = WebSocketServer(strict, "localhost", 9000)
    websocket = await open_socket(ws_server, "X")

    await ws_server.process_message(
        "X", frame("join-room", roomId="nope", username="x", roomType="group")
    )

    assert websocket.events() == [{"type": "room-not-found", "data": {"roomId": "nope"}}]
    assert directory.get_room_count() == 0


@pytest.mark.asyncio
async def test_create_room_request(ws_server, directory):
    websocket = await open_socket(ws_server, "X")

    await ws_server.process_message(
        "X", frame("create-room", username="alice", roomType="private")
    )

    event = websocket.events()[0]
    assert event["type"] == "room-created"
    assert directory.kind_of(event["data"]["roomId"]) == RoomKind.PRIVATE


@pytest.mark.asyncio
async def test_sole_member_disconnect_scenario(ws_server, directory, registry):
    websocket = await open_socket(ws_server, "X")
    await ws_server.process_message(
        "X", frame("join-room", roomId="solo", username="x", roomType="group")
    )
    websocket.clear()

    await ws_server.close_connection("X")

    assert websocket.sent_messages == []
    assert not directory.exists("solo")
    assert not registry.is_connected("X")


@pytest.mark.asyncio
async def test_disconnect_notifies_remaining_members(ws_server, directory):
    ws_x = await open_socket(ws_server, "X")
    await open_socket(ws_server, "Y")
    for connection_id, name in (("X", "alice"), ("Y", "bob")):
        await ws_server.process_message(
            connection_id, frame("join-room", roomId="room", username=name, roomType="group")
        )
    ws_x.clear()

    await ws_server.close_connection("Y")

    assert ws_x.events() == [{"type": "user-left", "data": {"username": "bob"}}]
    assert directory.exists("room")


@pytest.mark.asyncio
async def test_typing_and_read_receipt(ws_server):
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")
    for connection_id, name in (("X", "alice"), ("Y", "bob")):
        await ws_server.process_message(
            connection_id, frame("join-room", roomId="room", username=name, roomType="group")
        )
    ws_x.clear()
    ws_y.clear()

    await ws_server.process_message("Y", frame("typing", roomId="room", isTyping=True))
    await ws_server.process_message("X", frame("message-seen", roomId="room", messageId="m1"))

    assert ws_x.events() == [
        {"type": "typing", "data": {"senderName": "bob", "isTyping": True}}
    ]
    assert ws_y.events() == [{"type": "read-receipt", "data": {"messageId": "m1"}}]


@pytest.mark.asyncio
async def test_chat_from_non_member_is_rejected(ws_server):
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")
    await ws_server.process_message("X", frame("join-room", roomId="room", username="x", roomType="group"))
    ws_x.clear()

    await ws_server.process_message(
        "Y", frame("chat-message", roomId="room", message="hi", messageId="m1")
    )

    assert ws_x.sent_messages == []
    error = ws_y.events()[0]
    assert error["type"] == "error"
    assert error["data"]["errorCode"] == "NOT_MEMBER"


@pytest.mark.asyncio
async def test_invalid_frames_get_error_and_change_nothing(ws_server, directory):
    websocket = await open_socket(ws_server, "X")

    await ws_server.process_message("X", "not json")
    await ws_server.process_message("X", frame("fly", roomId="r"))
    await ws_server.process_message("X", frame("join-room", roomId="r", username="x", roomType="big"))

    codes = [event["data"]["errorCode"] for event in websocket.of_type("error")]
    assert codes == ["INVALID_JSON", "UNKNOWN_TYPE", "INVALID_ROOM_TYPE"]
    assert directory.get_room_count() == 0


@pytest.mark.asyncio
async def test_unexpected_error_is_reported_not_raised(ws_server):
    websocket = await open_socket(ws_server, "X")

    async def explode(connection_id, event):
        raise RuntimeError("boom")

    ws_server._handlers[JoinRoomRequest] = explode
    await ws_server.process_message("X", frame("join-room", roomId="r", username="x", roomType="group"))

    error = websocket.of_type("error")[0]
    assert error["data"]["errorCode"] == "INTERNAL_ERROR"


@pytest.mark.asyncio
async def test_handle_client_runs_leave_sweep_on_close(ws_server, directory, registry):
    websocket = ScriptedWebSocket(
        [frame("join-room", roomId="room", username="alice", roomType="group")]
    )

    await ws_server.handle_client(websocket)

    assert websocket.types() == ["connected", "join-success"]
    assert not directory.exists("room")
    assert registry.connection_count() == 0


@pytest.mark.asyncio
async def test_join_without_room_type_is_not_treated_as_group(ws_server, registry):
    ws_x = await open_socket(ws_server, "X")
    ws_y = await open_socket(ws_server, "Y")
    await ws_server.process_message(
        "X", frame("join-room", roomId="pair", username="x", roomType="private")
    )
    ws_x.clear()

    await ws_server.process_message("Y", frame("join-room", roomId="pair", username="y"))

    assert ws_y.types() == ["error"]
    assert ws_y.events()[0]["data"]["errorCode"] == "INVALID_ROOM_TYPE"
    assert ws_x.sent_messages == []
    assert registry.members_of("pair") == ["X"]
