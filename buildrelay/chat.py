"""Channel message handling: doc references and link titles."""

import logging

from .docs import DocReferenceMatcher
from .lines import Outbox
from .titles import TitleFetcher

logger = logging.getLogger("buildrelay.chat")


class ChatHandler:
    """Reacts to text said in the channel.

    Doc references are answered right away, in the order they appear.
    Link titles are fetched in the background and show up whenever they
    arrive.
    """

    def __init__(self, outbox: Outbox, matcher: DocReferenceMatcher, fetcher: TitleFetcher):
        self._outbox = outbox
        self._matcher = matcher
        self._fetcher = fetcher

    async def handle(self, sender: str, text: str):
        await self._outbox.extend(self._matcher.match(text))
        tasks = self._fetcher.spawn(text)
        if tasks:
            logger.debug(f"Fetching {len(tasks)} link title(s) from {sender}")
