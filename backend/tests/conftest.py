"""Shared fixtures for the relay tests."""

import asyncio
import os

import pytest

# Register pytest-asyncio plugin
pytest_plugins = ("pytest_asyncio",)

# Must be set before Settings() is built anywhere; real env vars win.
os.environ.setdefault("PASSWORD", "hunter2")

from pubrelay.config import Settings  # noqa: E402
from pubrelay.models import Hub  # noqa: E402

PASSWORD = "hunter2"


class FakeWebSocket:
    """Stands in for a FastAPI WebSocket.

    Inbound frames are ASGI messages pushed onto a queue; outbound text and the
    close frame are recorded.
    """

    def __init__(self):
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent = []
        self.close_code = None
        self.close_reason = None
        # simulates the peer vanishing without a close frame
        self.broken = False

    @property
    def closed(self) -> bool:
        return self.close_code is not None

    # ASGI side, used by the code under test
    async def receive(self) -> dict:
        return await self.inbound.get()

    async def send_text(self, data: str) -> None:
        if self.broken or self.closed:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason=None) -> None:
        if self.closed:
            raise RuntimeError("already closed")
        self.close_code = code
        self.close_reason = reason

    # peer side, used by the tests
    def feed_text(self, text: str) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def feed_bytes(self, data: bytes) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000) -> None:
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class StubAuthenticator:
    """Authenticator returning a fixed outcome and recording what it saw."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.seen = []

    async def authenticate(self, credentials):
        self.seen.append(credentials)
        return self.outcome


@pytest.fixture
def settings():
    return Settings(password=PASSWORD, _env_file=None)


@pytest.fixture
def hub():
    return Hub()


@pytest.fixture
def fake_ws():
    return FakeWebSocket()
