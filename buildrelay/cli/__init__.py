"""buildrelay CLI — command line interface."""

import click

from buildrelay import __version__


@click.group()
@click.version_option(version=__version__, prog_name="buildrelay")
def cli():
    """buildrelay — relay buildbot results, commits and link titles to IRC"""


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_decode  # noqa: E402, F401
from . import cmd_docs  # noqa: E402, F401
