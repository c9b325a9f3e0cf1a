"""Relay session — the one connection to the chat network.

The session is the only writer to the transport. Every producer (webhooks,
doc references, link titles) puts ChatLines on the shared outbox and the
session's send loop forwards them one at a time, so lines never interleave
mid-send and each producer's lines keep their order.

State machine:

    disconnected ──connect()──▶ connecting ──welcome──▶ connected
         ▲                          │                      │
         └──── connect failed ──────┘◀──── disconnect ─────┘

A failed connect is retried with a bounded backoff; a disconnect triggers
an immediate reconnect.
"""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from .errors import TransportError
from .lines import ChatLine, Outbox
from .transport import ChatTransport

logger = logging.getLogger("buildrelay.session")

# Reconnect delays in seconds; the last one repeats, capped by max_delay
_BACKOFF = (2, 5, 10, 15, 30)


class SessionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, max_delay: float) -> float:
    """Delay before reconnect attempt number ``attempt`` (0-based)."""
    return min(_BACKOFF[min(attempt, len(_BACKOFF) - 1)], max_delay)


class RelaySession:
    """Keeps one chat session alive and serializes all output onto it.

    Usage:
        session = RelaySession(transport, "#i3", outbox, on_chat=handler.handle)
        await session.start()
        # ... later ...
        await session.stop()
    """

    def __init__(
        self,
        transport: ChatTransport,
        channel: str,
        outbox: Outbox,
        on_chat: Optional[Callable[[str, str], Awaitable[None]]] = None,
        max_delay: float = 60.0,
    ):
        self._transport = transport
        self.channel = channel
        self._outbox = outbox
        self._on_chat = on_chat
        self.max_delay = max_delay

        self._state = SessionState.DISCONNECTED
        self._ready = asyncio.Event()
        self._disconnected = asyncio.Event()
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._inbound: set[asyncio.Task] = set()
        self.sent = 0

        transport.bind(
            on_connected=self._handle_connected,
            on_disconnected=self._handle_disconnected,
            on_message=self._handle_message,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    async def start(self):
        if self._running:
            logger.warning("Relay session already running")
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._supervise()),
            asyncio.create_task(self._send_loop()),
        ]

    async def stop(self):
        self._running = False
        tasks = self._tasks + list(self._inbound)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
        await self._transport.close()
        self._set_state(SessionState.DISCONNECTED)

    async def wait_connected(self):
        await self._ready.wait()

    # ── connection management ──

    def _set_state(self, state: SessionState):
        if state is not self._state:
            logger.debug(f"Session {self._state.value} -> {state.value}")
        self._state = state
        if state is SessionState.CONNECTED:
            self._ready.set()
        else:
            self._ready.clear()

    async def connect(self) -> bool:
        """One connect attempt. Returns True if the transport accepted it."""
        self._set_state(SessionState.CONNECTING)
        self._disconnected.clear()
        try:
            await self._transport.connect()
        except TransportError as e:
            logger.error(f"Connection error: {e}")
            self._set_state(SessionState.DISCONNECTED)
            return False
        return True

    async def _supervise(self):
        """Connect, wait for a disconnect, reconnect. Forever."""
        attempt = 0
        while self._running:
            if not await self.connect():
                delay = backoff_delay(attempt, self.max_delay)
                attempt += 1
                logger.warning(f"Connect attempt {attempt} failed, retrying in {delay}s...")
                await asyncio.sleep(delay)
                continue

            attempt = 0
            await self._disconnected.wait()
            if self._running:
                logger.info("Disconnected. Reconnecting...")

    def _handle_connected(self):
        logger.info(f"Connected, joining channel {self.channel}")
        self._set_state(SessionState.CONNECTED)
        try:
            self._transport.join(self.channel)
        except TransportError as e:
            logger.error(f"Could not join {self.channel}: {e}")

    def _handle_disconnected(self):
        self._set_state(SessionState.DISCONNECTED)
        self._disconnected.set()

    # ── inbound ──

    def _handle_message(self, target: str, sender: str, text: str):
        if target.lower() != self.channel.lower():
            logger.info(f'Ignoring private message to me: "{text}"')
            return
        if self._on_chat is None:
            return
        task = asyncio.create_task(self._on_chat(sender, text))
        self._inbound.add(task)
        task.add_done_callback(self._inbound_done)

    def _inbound_done(self, task: asyncio.Task):
        self._inbound.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Chat handler failed: {task.exception()!r}")

    # ── outbound ──

    def send(self, line: ChatLine) -> bool:
        """Forward one line to the transport. Refused lines are dropped."""
        try:
            self._transport.send_message(self.channel, line.text)
        except TransportError as e:
            logger.warning(f"Dropping line from {line.producer}: {e}")
            return False
        self.sent += 1
        return True

    async def _send_loop(self):
        while self._running:
            line = await self._outbox.get()
            try:
                await self._ready.wait()
                self.send(line)
            finally:
                self._outbox.task_done()
