import json

import pytest
from starlette.websockets import WebSocketState

from registry import PeerRegistry, RoomIndex
from routing import ContactRouter, RoomRouter


class FakeConnection:
    """Stands in for a starlette WebSocket: records every frame sent to it."""

    def __init__(self, fail_sends=False):
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.fail_sends = fail_sends
        self.sent = []

    async def send_text(self, text):
        if self.fail_sends:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(text))

    def drop(self):
        self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def registry():
    return PeerRegistry()


@pytest.fixture
def rooms():
    return RoomIndex()


@pytest.fixture
def room_router(registry, rooms):
    return RoomRouter(registry, rooms)


@pytest.fixture
def contact_router(registry):
    return ContactRouter(registry)


@pytest.fixture
def anyio_backend():
    return "asyncio"
