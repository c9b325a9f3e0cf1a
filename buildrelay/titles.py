"""Link titles — fetch the HTML <title> of URLs mentioned in the channel."""

import asyncio
import logging
import re
from typing import AsyncIterator, Optional

import httpx

from .errors import FetchFailed, FetchTimeout
from .lines import ChatLine, Outbox

logger = logging.getLogger("buildrelay.titles")

# This is naive, but good enough for chat text
URL_RE = re.compile(r"(http://[^ ]*)")

TITLE_RE = re.compile(rb"<title>(.*)</title>")

# Characters that stick to a URL written inside prose, e.g. "(http://x/y.html)"
_PROSE_TRAILERS = ",)"

LINK_INFO_PREFIX = "[Link info] "


def find_urls(text: str) -> list[str]:
    """Return every http:// URL candidate in ``text``, in order."""
    return URL_RE.findall(text)


async def iter_lines(response: httpx.Response, limit: int) -> AsyncIterator[bytes]:
    """Yield body lines without their line terminator.

    A line longer than ``limit`` bytes is yielded in ``limit``-sized pieces
    so a single huge line cannot grow the buffer without bound.
    """
    buf = bytearray()
    # Bytes of buf already known to hold no newline
    scanned = 0
    async for chunk in response.aiter_bytes():
        buf += chunk
        while True:
            nl = buf.find(b"\n", scanned)
            if nl == -1:
                scanned = len(buf)
                if scanned <= limit:
                    break
                yield bytes(buf[:limit])
                del buf[:limit]
                scanned -= limit
                continue
            if nl > limit:
                yield bytes(buf[:limit])
                del buf[:limit]
                scanned = nl - limit
                continue
            yield bytes(buf[:nl]).rstrip(b"\r")
            del buf[:nl + 1]
            scanned = 0
    if buf:
        yield bytes(buf).rstrip(b"\r")


class TitleFetcher:
    """Fetch link titles and post them to the channel.

    Usage:
        fetcher = TitleFetcher(client, outbox)
        fetcher.spawn("look at http://example.org/")   # fire and forget
        title = await fetcher.fetch_title("http://example.org/")
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        outbox: Outbox,
        timeout: float = 10.0,
        line_limit: int = 1024 * 1024,
    ):
        self._client = client
        self._outbox = outbox
        self.timeout = timeout
        self.line_limit = line_limit
        self._tasks: set[asyncio.Task] = set()

    async def _fetch_once(self, url: str) -> tuple[int, Optional[str]]:
        """GET ``url`` and scan a 200 body for a title.

        Returns:
            (status_code, title or None)

        Raises:
            FetchFailed: transport or read error, or a URL httpx refuses.
        """
        try:
            async with self._client.stream("GET", url) as response:
                logger.info(f'URL "{url}", status {response.status_code}')
                if response.status_code != 200:
                    return response.status_code, None
                async for line in iter_lines(response, self.line_limit):
                    m = TITLE_RE.search(line)
                    if m:
                        return 200, m.group(1).decode("utf-8", errors="replace")
                return 200, None
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchFailed(f"{type(e).__name__}: {e}") from e

    async def _fetch_with_deadline(self, url: str) -> tuple[int, Optional[str]]:
        try:
            return await asyncio.wait_for(self._fetch_once(url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeout(f"no answer within {self.timeout}s") from e

    async def fetch_title(self, url: str) -> Optional[str]:
        """Return the page title of ``url``, or None.

        Never raises for network trouble. A 404 on a URL ending in "," or ")"
        is retried once with those characters stripped, since that is
        usually punctuation picked up from the surrounding sentence.
        """
        retried = False
        while True:
            try:
                status, title = await self._fetch_with_deadline(url)
            except FetchTimeout as e:
                logger.debug(f"Title fetch for {url} abandoned: {e}")
                return None
            except FetchFailed as e:
                logger.info(f"Title fetch for {url} failed: {e}")
                return None

            if status == 404 and not retried and url.endswith(tuple(_PROSE_TRAILERS)):
                url = url.rstrip(_PROSE_TRAILERS)
                retried = True
                continue

            if status == 200 and title is None:
                logger.debug(f"No <title> in {url}")
            return title

    async def announce(self, url: str):
        """Fetch ``url``'s title and enqueue it as a chat line."""
        title = await self.fetch_title(url)
        if title is not None:
            await self._outbox.put(ChatLine(LINK_INFO_PREFIX + title, producer="title"))

    def spawn(self, text: str) -> list[asyncio.Task]:
        """Start one background announce task per URL in ``text``."""
        tasks = []
        for url in find_urls(text):
            task = asyncio.create_task(self.announce(url))
            self._tasks.add(task)
            task.add_done_callback(self._announce_done)
            tasks.append(task)
        return tasks

    def _announce_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Title announce failed: {task.exception()!r}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def stop(self):
        """Cancel outstanding fetches."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
