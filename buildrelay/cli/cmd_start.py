"""Start command."""

import asyncio

import click

from . import cli
from .shared import console


@cli.command()
@click.option("--channel", default=None, help="In which channel this bot should be in (default: #i3)")
@click.option("--port", type=int, default=None, help="Webhook listener port")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(channel, port, debug):
    """Start the relay."""
    from buildrelay.config import load_settings
    from buildrelay.main import run, setup_logging

    settings = load_settings(channel=channel, http_port=port, debug=debug or None)
    setup_logging(settings)

    console.print(f"[bold blue]Starting buildrelay for {settings.channel}...[/bold blue]")
    status = asyncio.run(run(settings))
    if status:
        raise SystemExit(status)
