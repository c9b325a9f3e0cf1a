"""buildrelay — Main entry point."""

import asyncio
import logging
import os
from typing import Optional

from .config import RelaySettings, load_settings
from .errors import ListenerBindFailed
from .relay import Relay

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("buildrelay")


def setup_logging(settings: RelaySettings):
    """Log to stderr, and to ``settings.log_file`` when one is configured."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            logging.FileHandler(os.path.expanduser(settings.log_file), encoding="utf-8")
        )
    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers)
    if settings.debug:
        logger.setLevel(logging.DEBUG)


async def run(settings: Optional[RelaySettings] = None) -> int:
    """Main run loop. Returns the process exit status."""
    settings = settings or load_settings()
    relay = Relay(settings)

    try:
        await relay.start()
        await relay.wait()
        return 0
    except ListenerBindFailed as e:
        logger.critical(f"Webhook listener failed: {e}")
        return 1
    finally:
        await relay.stop()


def main():
    """Entry point."""
    settings = load_settings()
    setup_logging(settings)
    raise SystemExit(asyncio.run(run(settings)))


if __name__ == "__main__":
    main()
