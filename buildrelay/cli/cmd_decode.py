"""Decode command: show what a buildbot payload would announce."""

import click

from . import cli
from .shared import console


@cli.command()
@click.argument("payload", type=click.File("rb"))
def decode(payload):
    """Print the chat lines a buildbot packets file produces.

    PAYLOAD is a file holding the JSON value of the ``packets`` form
    field, or ``-`` for stdin.
    """
    from buildrelay.errors import MalformedPayload
    from buildrelay.events import decode_lines

    try:
        lines = decode_lines(payload.read())
    except MalformedPayload as e:
        console.print(f"[red]Malformed payload:[/red] {e}")
        raise SystemExit(1)

    if not lines:
        console.print("[dim]No announceable events.[/dim]")
        return
    for line in lines:
        console.print(line, markup=False, highlight=False)
