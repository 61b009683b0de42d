"""Shared fixtures for relay tests."""

import json

import pytest

from relay import (
    ConnectionRegistry,
    EventRouter,
    MembershipManager,
    RoomDirectory,
    WebSocketServer,
)


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self):
        self.sent_messages = []

    async def send(self, message):
        self.sent_messages.append(message)

    def events(self):
        return [json.loads(message) for message in self.sent_messages]

    def types(self):
        return [event["type"] for event in self.events()]

    def of_type(self, message_type):
        return [event for event in self.events() if event["type"] == message_type]

    def clear(self):
        self.sent_messages.clear()


@pytest.fixture
def directory():
    return RoomDirectory()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(directory, registry):
    return EventRouter(directory, registry)


@pytest.fixture
def membership(directory, registry, router):
    return MembershipManager(directory, registry, router)


@pytest.fixture
def ws_server(membership):
    return WebSocketServer(membership, "localhost", 9000)


@pytest.fixture
def connect(registry):
    """Register a connection with a MockWebSocket and return the socket."""

    def _connect(connection_id):
        websocket = MockWebSocket()
        registry.register(connection_id, websocket)
        return websocket

    return _connect
