"""buildrelay configuration management."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("buildrelay.config")


class RelaySettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Chat
    channel: str = Field(default="#i3", description="Channel the bot joins and relays to")
    irc_server: str = Field(default="irc.twice-irc.de", description="IRC network address")
    irc_port: int = Field(default=6667, description="IRC port")
    nickname: str = Field(default="i3", description="Bot nickname")
    username: str = Field(default="i3", description="Bot username (ident)")
    realname: str = Field(default="http://build.i3wm.org/", description="Bot real name")
    reconnect_max_delay: float = Field(default=60.0, description="Upper bound on reconnect backoff (seconds)")

    # Webhooks
    http_host: str = Field(default="localhost", description="Webhook listener host")
    http_port: int = Field(default=8080, description="Webhook listener port")
    outbox_max_size: int = Field(default=0, description="Outbound line queue bound (0 = unbounded)")

    # Documentation references
    docs_base_url: str = Field(default="http://i3wm.org/docs", description="Base URL for documentation links")
    docs_index_url: str = Field(
        default="http://code.stapelberg.de/git/i3-website/tree/docs",
        description="Directory listing scanned for documentation page names",
    )
    docs_refresh_interval: float = Field(default=24 * 60 * 60, description="Doc index refresh period (seconds)")

    # Link titles
    title_timeout: float = Field(default=10.0, description="Deadline for a single title fetch (seconds)")
    title_line_limit: int = Field(default=1024 * 1024, description="Per-line read bound while scanning for <title>")

    # Logging
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    debug: bool = Field(default=False, description="Debug logging")

    model_config = {"env_prefix": "BUILDRELAY_", "env_file": ".env", "extra": "ignore"}


def load_settings(**overrides) -> RelaySettings:
    """Load settings from environment, applying explicit overrides on top."""
    overrides = {k: v for k, v in overrides.items() if v is not None}
    settings = RelaySettings(**overrides)

    # Webhook callers are not authenticated, so anything but loopback is worth a warning
    host = settings.http_host
    if host not in ("localhost", "127.0.0.1", "::1"):
        logger.warning(
            f"Webhook listener bound to {host}: anyone who can reach "
            f"port {settings.http_port} can post to {settings.channel}."
        )

    if not settings.channel.startswith(("#", "&")):
        logger.warning(f"Channel name {settings.channel!r} does not look like an IRC channel")

    return settings
