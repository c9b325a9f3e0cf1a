"""Webhook endpoints: buildbot status push and commit announcements.

Neither endpoint ever reports failure to the caller. A payload we cannot
read is logged and results in zero chat lines.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request

from . import __version__
from .context import RelayContext
from .errors import MalformedPayload
from .events import decode
from .lines import ChatLine, producer_tag

logger = logging.getLogger("buildrelay.webhooks")


def create_app(
    context: RelayContext,
    status: Optional[Callable[[], Dict[str, Any]]] = None,
) -> FastAPI:
    """Build the webhook app.

    Args:
        context: Shared relay context; lines go to ``context.outbox``
        status: Optional callable adding fields to ``GET /health``
    """
    app = FastAPI(title="buildrelay", version=__version__)
    app.state.context = context
    outbox = context.outbox

    @app.post("/push_buildbot")
    async def push_buildbot(request: Request) -> Dict[str, Any]:
        # Buildbot sends the packets URL-encoded
        try:
            form = await request.form()
            packets = form.get("packets") or ""
        except Exception as e:
            logger.warning(f"Could not parse form: {e}")
            packets = ""

        try:
            events = decode(packets)
        except MalformedPayload as e:
            logger.warning(f"Could not parse buildbot packets: {e}")
            events = []

        producer = producer_tag("push_buildbot")
        for event in events:
            await outbox.put(ChatLine(event.as_chat_line(), producer=producer))
        return {"ok": True, "lines": len(events)}

    @app.post("/push_commit")
    async def push_commit(request: Request) -> Dict[str, Any]:
        body = await request.body()
        lines = body.decode("utf-8", errors="replace").split("\n")
        producer = producer_tag("push_commit")
        for line in lines:
            await outbox.put(ChatLine(line, producer=producer))
        return {"ok": True, "lines": len(lines)}

    @app.get("/health")
    def health() -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "ok": True,
            "queued": outbox.qsize(),
            "doc_pages": len(context.doc_index),
        }
        if status is not None:
            result.update(status())
        return result

    return app
