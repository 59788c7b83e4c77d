"""
MTD CLI: todos, tasks and encrypted sync from the command line.

Each command group lives in its own module and is attached to the
main Click group through a register function.

Entry point: mtd.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="mtd")
@click.option("-v", "--verbose", count=True, help="Log progress (-vv for debug).")
def main(verbose: int):
    """MTD: my todos, everywhere.

    Keep one-time todos and weekly tasks, and sync them with your
    own server over an encrypted link.
    """
    setup_logging(verbose)


from .items import register_item_commands
from .setup import register_setup_commands
from .sync_cmd import register_sync_commands

register_item_commands(main)
register_sync_commands(main)
register_setup_commands(main)
