"""Relay assembly: wires every component around one RelayContext."""

import asyncio
import logging
from typing import Optional

import httpx
import uvicorn

from .chat import ChatHandler
from .config import RelaySettings
from .context import RelayContext
from .docs import DocReferenceMatcher, DocRefresher
from .errors import ListenerBindFailed
from .session import RelaySession
from .titles import TitleFetcher
from .transport import ChatTransport, IrcTransport
from .webhooks import create_app

logger = logging.getLogger("buildrelay.relay")

_USER_AGENT = "Mozilla/5.0 (compatible; buildrelay)"


class Relay:
    """The whole bot.

    Usage:
        relay = Relay(settings)
        await relay.start()
        await relay.wait()      # returns only if the HTTP listener dies
        await relay.stop()
    """

    def __init__(self, settings: RelaySettings, transport: Optional[ChatTransport] = None):
        self.settings = settings
        self.context = RelayContext.from_settings(settings)

        self.http = httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )
        self.transport = transport or IrcTransport(
            settings.irc_server,
            settings.irc_port,
            nickname=settings.nickname,
            username=settings.username,
            realname=settings.realname,
        )

        self.matcher = DocReferenceMatcher(
            self.http,
            self.context.doc_index,
            index_url=settings.docs_index_url,
            base_url=settings.docs_base_url,
        )
        self.refresher = DocRefresher(self.matcher, interval=settings.docs_refresh_interval)
        self.fetcher = TitleFetcher(
            self.http,
            self.context.outbox,
            timeout=settings.title_timeout,
            line_limit=settings.title_line_limit,
        )
        self.chat = ChatHandler(self.context.outbox, self.matcher, self.fetcher)
        self.session = RelaySession(
            self.transport,
            settings.channel,
            self.context.outbox,
            on_chat=self.chat.handle,
            max_delay=settings.reconnect_max_delay,
        )

        self.app = create_app(self.context, status=self.status)
        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=settings.http_host,
                port=settings.http_port,
                log_config=None,
                access_log=settings.debug,
            )
        )
        self._server_task: Optional[asyncio.Task] = None

    def status(self) -> dict:
        return {
            "session": self.session.state.value,
            "channel": self.session.channel,
            "sent": self.session.sent,
            "fetching": self.fetcher.pending,
        }

    async def _serve(self):
        try:
            await self._server.serve()
        except SystemExit as e:
            # uvicorn exits the process when it cannot bind
            raise ListenerBindFailed(
                f"cannot listen on {self.settings.http_host}:{self.settings.http_port}"
            ) from e
        if not self._server.started:
            raise ListenerBindFailed(
                f"cannot listen on {self.settings.http_host}:{self.settings.http_port}"
            )

    async def start(self):
        await self.refresher.start()
        await self.session.start()
        self._server_task = asyncio.create_task(self._serve())
        logger.info(
            f"Relaying to {self.settings.channel} on {self.settings.irc_server}, "
            f"webhooks on {self.settings.http_host}:{self.settings.http_port}"
        )

    async def wait(self):
        """Block until the HTTP listener stops. Raises ListenerBindFailed."""
        if self._server_task is None:
            raise RuntimeError("Relay not started")
        await self._server_task

    async def stop(self):
        if self._server_task and not self._server_task.done():
            self._server.should_exit = True
            await asyncio.gather(self._server_task, return_exceptions=True)
        await self.session.stop()
        await self.fetcher.stop()
        await self.refresher.stop()
        await self.http.aclose()
        logger.info("Relay stopped.")
