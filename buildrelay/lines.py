"""Chat lines and the single outbound queue every producer writes to."""

import asyncio
import itertools
from dataclasses import dataclass


@dataclass(frozen=True)
class ChatLine:
    """A line scheduled for delivery to the channel.

    ``producer`` names where the line came from. Lines sharing a producer
    are delivered in the order they were enqueued; nothing is promised
    across producers.
    """

    text: str
    producer: str = "unknown"


_producer_ids = itertools.count(1)


def producer_tag(kind: str) -> str:
    """Return a fresh producer tag such as ``push_commit#12``."""
    return f"{kind}#{next(_producer_ids)}"


class Outbox:
    """FIFO of ChatLines drained by the relay session.

    Unbounded by default. With ``max_size`` set, ``put`` waits while the
    queue is full, which pushes back on webhook handlers.
    """

    def __init__(self, max_size: int = 0):
        self._queue: asyncio.Queue[ChatLine] = asyncio.Queue(maxsize=max_size)

    async def put(self, line: ChatLine):
        await self._queue.put(line)

    async def extend(self, lines):
        for line in lines:
            await self._queue.put(line)

    async def get(self) -> ChatLine:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        """Wait until every queued line has been handled."""
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def drain(self) -> list[ChatLine]:
        """Remove and return everything currently queued."""
        lines = []
        while not self._queue.empty():
            lines.append(self._queue.get_nowait())
            self._queue.task_done()
        return lines
