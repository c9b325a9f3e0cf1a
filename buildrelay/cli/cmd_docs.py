"""Docs command: inspect the documentation index."""

import asyncio

import click
import httpx
from rich.table import Table

from . import cli
from .shared import console


@cli.command()
@click.option("--check", "text", default=None, help="Show the reference lines this chat text would produce")
def docs(text):
    """Fetch the documentation index and list known pages."""
    from buildrelay.config import load_settings
    from buildrelay.docs import DocIndex, DocReferenceMatcher

    settings = load_settings()

    async def _docs():
        async with httpx.AsyncClient(follow_redirects=True) as client:
            matcher = DocReferenceMatcher(
                client,
                DocIndex(),
                index_url=settings.docs_index_url,
                base_url=settings.docs_base_url,
            )
            ok = await matcher.refresh_index()
            return ok, matcher

    ok, matcher = asyncio.run(_docs())
    if not ok:
        console.print(f"[red]Could not read documentation index from {settings.docs_index_url}[/red]")
        raise SystemExit(1)

    table = Table(title=f"Documentation pages ({len(matcher.index)})", show_header=False, padding=(0, 2))
    table.add_column("Page", style="bold")
    table.add_column("Link")
    for name in sorted(matcher.index.names):
        table.add_row(name, matcher.link(name))
    console.print(table)

    if text is not None:
        lines = matcher.match(text)
        if not lines:
            console.print("[dim]No documentation references in that text.[/dim]")
        for line in lines:
            console.print(line.text, markup=False, highlight=False)
