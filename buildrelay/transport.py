"""Chat transport adapters.

The relay only needs five things from a chat network: connect, join,
send a message, and hear about "connected", "disconnected" and incoming
messages. ``ChatTransport`` is that contract; ``IrcTransport`` fulfils it
with the ``irc`` library's asyncio reactor.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import irc.client
import irc.client_aio

from .errors import TransportError

logger = logging.getLogger("buildrelay.transport")


def _do_nothing(*args, **kwargs):
    pass


class ChatTransport(ABC):
    """Abstract chat network connection.

    Handlers are plain callables invoked from the event loop:
        on_connected(): registered with the network
        on_disconnected(): connection lost
        on_message(target, sender, text): a message arrived
    """

    def __init__(self):
        self.on_connected: Callable[[], None] = _do_nothing
        self.on_disconnected: Callable[[], None] = _do_nothing
        self.on_message: Callable[[str, str, str], None] = _do_nothing

    def bind(
        self,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[], None]] = None,
        on_message: Optional[Callable[[str, str, str], None]] = None,
    ):
        if on_connected:
            self.on_connected = on_connected
        if on_disconnected:
            self.on_disconnected = on_disconnected
        if on_message:
            self.on_message = on_message

    @abstractmethod
    async def connect(self):
        """Open the connection. Raises TransportError on failure."""

    @abstractmethod
    def join(self, channel: str):
        """Join ``channel``."""

    @abstractmethod
    def send_message(self, channel: str, text: str):
        """Send one line to ``channel``. Raises TransportError if refused."""

    @abstractmethod
    async def close(self):
        """Disconnect and release resources."""


class IrcTransport(ChatTransport):
    """IRC transport on ``irc.client_aio``."""

    def __init__(
        self,
        server: str,
        port: int = 6667,
        nickname: str = "i3",
        username: Optional[str] = None,
        realname: Optional[str] = None,
    ):
        super().__init__()
        self.server = server
        self.port = port
        self.nickname = nickname
        self.username = username or nickname
        self.realname = realname or nickname
        self._reactor: Optional[irc.client_aio.AioReactor] = None
        self._connection: Optional[irc.client_aio.AioConnection] = None

    def _ensure_reactor(self):
        # The reactor picks up the running loop, so build it lazily
        if self._reactor is not None:
            return
        self._reactor = irc.client_aio.AioReactor()
        self._reactor.add_global_handler("welcome", self._on_welcome)
        self._reactor.add_global_handler("disconnect", self._on_disconnect)
        self._reactor.add_global_handler("pubmsg", self._on_msg)
        self._reactor.add_global_handler("privmsg", self._on_msg)
        self._connection = self._reactor.server()

    async def connect(self):
        self._ensure_reactor()
        logger.info(f"Connecting to {self.server}:{self.port} as {self.nickname}...")
        try:
            await self._connection.connect(
                self.server,
                self.port,
                self.nickname,
                username=self.username,
                ircname=self.realname,
            )
        except (irc.client.ServerConnectionError, OSError) as e:
            raise TransportError(f"could not connect to {self.server}:{self.port}: {e}") from e

    def join(self, channel: str):
        try:
            self._connection.join(channel)
        except irc.client.ServerNotConnectedError as e:
            raise TransportError(f"cannot join {channel}: not connected") from e

    def send_message(self, channel: str, text: str):
        if self._connection is None:
            raise TransportError("not connected")
        try:
            self._connection.privmsg(channel, text)
        except irc.client.ServerNotConnectedError as e:
            raise TransportError("not connected") from e
        except ValueError as e:
            # InvalidCharacters / MessageTooLong
            raise TransportError(f"line refused: {e}") from e

    async def close(self):
        if self._connection is not None and self._connection.is_connected():
            self._connection.disconnect("bye")

    # ── irc event handlers ──

    def _on_welcome(self, connection, event):
        self.on_connected()

    def _on_disconnect(self, connection, event):
        self.on_disconnected()

    def _on_msg(self, connection, event):
        text = event.arguments[0] if event.arguments else ""
        sender = event.source.nick if event.source else ""
        self.on_message(event.target, sender, text)
