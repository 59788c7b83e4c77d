"""Shared helpers for the CLI command modules.

Provides the Rich console, logging setup, list loading and saving,
and rendering of todos and tasks.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import MTD_HOME
from ..config import MtdConfig, load_config, resolve_home
from ..errors import StorageError
from ..models import ItemKind, TdList, Weekday, utcnow
from ..storage import CollectionStore

console = Console()
logger = logging.getLogger("mtd.cli")

WEEKDAY_CHOICE = click.Choice([w.value for w in Weekday], case_sensitive=False)
KIND_CHOICE = click.Choice([k.value for k in ItemKind], case_sensitive=False)

home_option = click.option(
    "--home",
    default=MTD_HOME,
    type=click.Path(),
    help="MTD home directory (config and default list location).",
)


def setup_logging(verbosity: int) -> None:
    """Send log records to stderr when asked to be verbose."""
    if verbosity <= 0:
        return
    level = logging.DEBUG if verbosity > 1 else logging.INFO
    logging.basicConfig(level=level, format="%(name)s: %(message)s")


def fail(message: str) -> None:
    """Print an error and exit non-zero."""
    console.print(f"[bold red]Error:[/] {message}")
    sys.exit(1)


class Workspace:
    """Config, store and list for one CLI invocation.

    The list is loaded once and written back by :meth:`save`.
    """

    def __init__(self, home: str) -> None:
        self.home: Path = resolve_home(Path(home))
        self.config: MtdConfig = load_config(self.home)
        self.store = CollectionStore(self.config.items_path(self.home))
        self._list: Optional[TdList] = None

    @property
    def list(self) -> TdList:
        if self._list is None:
            try:
                self._list = self.store.load_collection()
            except StorageError as exc:
                fail(escape(str(exc)))
        return self._list

    def save(self) -> None:
        expired = self.list.expire_done_todos(utcnow())
        if expired:
            logger.info("Removed %d todos finished over a day ago", expired)
        self.store.save_collection(self.list)


def _check(done: bool) -> str:
    return "[green]✓[/]" if done else "[dim]·[/]"


def render_day(tdlist: TdList, weekday: Weekday, kind: Optional[ItemKind]) -> Table:
    """Table of the items to show on ``weekday``."""
    title = weekday.value.capitalize()
    if weekday == Weekday.today():
        title += " (today)"
    table = Table(title=title, title_justify="left", show_edge=False)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Body")
    table.add_column("Done", justify="center")

    if kind in (None, ItemKind.TODO):
        for todo in tdlist.todos_for(weekday):
            table.add_row(str(todo.id), "todo", escape(todo.body), _check(todo.done))
    if kind in (None, ItemKind.TASK):
        for task in tdlist.tasks_for(weekday):
            table.add_row(str(task.id), "task", escape(task.body), _check(task.done))
    return table


def parse_weekdays(values) -> list[Weekday]:
    return [Weekday(v.lower()) for v in values]
