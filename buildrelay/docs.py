"""Documentation references.

Channel members can write ``>userguide`` or ``>userguide#configuring`` and
the bot answers with a link to that page. The set of valid page names is
scraped from the documentation directory listing at startup and then once
a day.
"""

import asyncio
import logging
import re
from typing import Iterable, Optional

import httpx

from .errors import IndexRefreshFailed
from .lines import ChatLine

logger = logging.getLogger("buildrelay.docs")

# The listing is served by cgit, so a regex is good enough here
DOCLINK_RE = re.compile(r"""href=['"][^'"]*['"]>([^<]*)\.html""")

DOCREF_RE = re.compile(r">([a-zA-Z0-9-]+)(#[a-zA-Z0-9_-]+)?\b")

DOCREF_PREFIX = "[Documentation reference] "


def parse_listing(html: str) -> set[str]:
    """Extract page base-names (``userguide`` for ``userguide.html``)."""
    return set(DOCLINK_RE.findall(html))


class DocIndex:
    """Snapshot of known documentation page names.

    The snapshot is an immutable frozenset; ``replace`` swaps in a new one
    wholesale, so readers see either the old or the new set, never a
    partially built one.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._names = frozenset(names)

    @property
    def names(self) -> frozenset:
        return self._names

    def replace(self, names: Iterable[str]):
        self._names = frozenset(names)

    def __contains__(self, name) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"DocIndex({sorted(self._names)!r})"


class DocReferenceMatcher:
    """Turns ``>name[#fragment]`` tokens into documentation links."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        index: DocIndex,
        index_url: str,
        base_url: str = "http://i3wm.org/docs",
    ):
        self._client = client
        self.index = index
        self.index_url = index_url
        self.base_url = base_url.rstrip("/")

    async def _fetch_listing(self) -> set[str]:
        try:
            response = await self._client.get(self.index_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise IndexRefreshFailed(f"could not get documentation index: {e}") from e
        if response.status_code != 200:
            raise IndexRefreshFailed(f"documentation index returned HTTP {response.status_code}")

        names = parse_listing(response.text)
        if not names:
            raise IndexRefreshFailed("documentation index lists no pages")
        return names

    async def refresh_index(self) -> bool:
        """Re-read the documentation listing.

        Returns:
            True if the index was replaced. On any failure the previous
            index stays in place.
        """
        logger.info("Retrieving documentation index…")
        try:
            names = await self._fetch_listing()
        except IndexRefreshFailed as e:
            logger.warning(f"{e}, keeping {len(self.index)} known pages")
            return False

        self.index.replace(names)
        logger.info(f"docfiles = {sorted(names)}")
        return True

    def link(self, name: str, fragment: str = "") -> str:
        return f"{self.base_url}/{name}.html{fragment}"

    def match(self, text: str) -> list[ChatLine]:
        """Return one reference line per known ``>name`` token, in order."""
        lines = []
        for m in DOCREF_RE.finditer(text):
            name = m.group(1).lower()
            fragment = m.group(2) or ""
            logger.debug(f"Checking whether *{name}* is a valid docref…")
            if name in self.index:
                lines.append(ChatLine(DOCREF_PREFIX + self.link(name, fragment), producer="docs"))
        return lines


class DocRefresher:
    """Refreshes the doc index at startup and then every ``interval`` seconds.

    Each refresh runs as its own task, so a slow documentation server never
    holds up the loop or the relay.

    Usage:
        refresher = DocRefresher(matcher, interval=86400)
        await refresher.start()
        # ... later ...
        await refresher.stop()
    """

    def __init__(self, matcher: DocReferenceMatcher, interval: float = 24 * 60 * 60):
        self._matcher = matcher
        self.interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._refreshes: set[asyncio.Task] = set()

    def trigger(self) -> asyncio.Task:
        """Start one refresh in the background."""
        task = asyncio.create_task(self._matcher.refresh_index())
        self._refreshes.add(task)
        task.add_done_callback(self._refresh_done)
        return task

    def _refresh_done(self, task: asyncio.Task):
        self._refreshes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Documentation refresh failed: {task.exception()!r}")

    async def start(self):
        if self._running:
            logger.warning("Doc refresher already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self):
        self._running = False
        tasks = list(self._refreshes)
        if self._task:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_loop(self):
        while self._running:
            self.trigger()
            await asyncio.sleep(self.interval)
