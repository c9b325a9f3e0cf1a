"""Pytest configuration and shared fixtures."""

import pytest

from buildrelay.config import RelaySettings
from buildrelay.context import RelayContext
from buildrelay.docs import DocIndex
from buildrelay.errors import TransportError
from buildrelay.lines import Outbox
from buildrelay.transport import ChatTransport


class FakeTransport(ChatTransport):
    """In-memory chat transport.

    ``fail_connects`` makes that many connect attempts fail first.
    With ``auto_welcome`` the "connected" handler fires right after a
    successful connect, like a server greeting us.
    """

    def __init__(self, fail_connects: int = 0, auto_welcome: bool = True):
        super().__init__()
        self.fail_connects = fail_connects
        self.auto_welcome = auto_welcome
        self.connect_attempts = 0
        self.joined: list[str] = []
        self.sent: list[tuple[str, str]] = []
        self.closed = False

    async def connect(self):
        self.connect_attempts += 1
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise TransportError("connection refused")
        if self.auto_welcome:
            self.on_connected()

    def join(self, channel: str):
        self.joined.append(channel)

    def send_message(self, channel: str, text: str):
        if "\r" in text:
            raise TransportError("line refused: carriage return")
        self.sent.append((channel, text))

    async def close(self):
        self.closed = True

    # Test helpers

    def welcome(self):
        self.on_connected()

    def drop(self):
        self.on_disconnected()

    def say(self, target: str, text: str, sender: str = "alice"):
        self.on_message(target, sender, text)

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


@pytest.fixture
def settings():
    """Settings that never touch the network or a .env file."""
    return RelaySettings(
        _env_file=None,
        channel="#i3",
        docs_base_url="http://i3wm.org/docs",
        docs_index_url="http://docs.example/tree/docs",
        reconnect_max_delay=0.01,
        title_timeout=1.0,
    )


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def doc_index():
    return DocIndex({"userguide", "multi-monitor", "debugging"})


@pytest.fixture
def context(settings):
    return RelayContext.from_settings(settings)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for FakeTransports with non-default behaviour."""
    return FakeTransport
