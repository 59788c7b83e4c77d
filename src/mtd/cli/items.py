"""Item commands: show, add, remove, set, do, undo."""

from __future__ import annotations

from typing import Optional

import click
from rich.markup import escape

from ._common import (
    KIND_CHOICE,
    WEEKDAY_CHOICE,
    Workspace,
    console,
    fail,
    home_option,
    parse_weekdays,
    render_day,
)
from ..errors import NotFound
from ..models import ItemKind, Weekday, utcnow


def register_item_commands(main: click.Group) -> None:
    """Register the item commands on the main group."""

    @main.command("show")
    @home_option
    @click.option("--item-type", "-i", type=KIND_CHOICE, default=None, help="Only this kind.")
    @click.option("--weekday", "-w", type=WEEKDAY_CHOICE, default=None, help="Day to show.")
    @click.option("--week", is_flag=True, help="Show seven days starting today.")
    def show(home: str, item_type: Optional[str], weekday: Optional[str], week: bool):
        """Show todos and tasks for today, a weekday, or the week."""
        if week and weekday:
            fail("--week and --weekday cannot be combined.")

        ws = Workspace(home)
        kind = ItemKind(item_type.lower()) if item_type else None
        today = Weekday.today()

        if week:
            days = [today.following(n) for n in range(7)]
        elif weekday:
            days = [Weekday(weekday.lower())]
        else:
            days = [today]

        if ws.list.is_empty:
            console.print("[dim]Nothing to do.[/]")
            return
        for day in days:
            console.print(render_day(ws.list, day, kind))
            console.print()

    @main.command("add")
    @home_option
    @click.argument("item_type", type=KIND_CHOICE)
    @click.argument("body")
    @click.argument("weekdays", nargs=-1, type=WEEKDAY_CHOICE)
    def add(home: str, item_type: str, body: str, weekdays: tuple[str, ...]):
        """Add a todo (optionally for a weekday) or a task (for one or more weekdays)."""
        ws = Workspace(home)
        days = parse_weekdays(weekdays)

        if ItemKind(item_type.lower()) == ItemKind.TODO:
            if len(days) > 1:
                fail("A todo takes at most one weekday.")
            item = ws.list.add_todo(body, days[0] if days else None)
        else:
            if not days:
                fail("A task needs at least one weekday.")
            item = ws.list.add_task(body, days)

        ws.save()
        console.print(f"  [green]Added[/] {item_type.lower()} {escape(str(item))}")

    @main.command("remove")
    @home_option
    @click.argument("item_type", type=KIND_CHOICE)
    @click.argument("item_id", type=click.IntRange(min=0))
    def remove(home: str, item_type: str, item_id: int):
        """Remove an item by id."""
        ws = Workspace(home)
        try:
            if ItemKind(item_type.lower()) == ItemKind.TODO:
                item = ws.list.remove_todo(item_id)
            else:
                item = ws.list.remove_task(item_id)
        except NotFound as exc:
            fail(str(exc))
        ws.save()
        console.print(f"  [yellow]Removed[/] {item_type.lower()} {escape(str(item))}")

    @main.command("set")
    @home_option
    @click.argument("item_type", type=KIND_CHOICE)
    @click.argument("item_id", type=click.IntRange(min=0))
    @click.option("--body", "-b", default=None, help="New body text.")
    @click.option(
        "--weekday", "-w", "weekdays", multiple=True, type=WEEKDAY_CHOICE,
        help="New weekday(s). Repeat for tasks.",
    )
    @click.option("--no-weekday", is_flag=True, help="Unschedule a todo.")
    def set_item(
        home: str,
        item_type: str,
        item_id: int,
        body: Optional[str],
        weekdays: tuple[str, ...],
        no_weekday: bool,
    ):
        """Change the body or weekday(s) of an item."""
        ws = Workspace(home)
        days = parse_weekdays(weekdays)
        try:
            if ItemKind(item_type.lower()) == ItemKind.TODO:
                if len(days) > 1:
                    fail("A todo takes at most one weekday.")
                item = ws.list.set_todo(
                    item_id,
                    body=body,
                    weekday=days[0] if days else None,
                    clear_weekday=no_weekday,
                )
            else:
                if no_weekday:
                    fail("A task needs at least one weekday.")
                item = ws.list.set_task(item_id, body=body, weekdays=days or None)
        except NotFound as exc:
            fail(str(exc))
        ws.save()
        console.print(f"  [green]Updated[/] {item_type.lower()} {escape(str(item))}")

    def _toggle(home: str, item_type: str, item_id: int, done: bool) -> None:
        ws = Workspace(home)
        try:
            if ItemKind(item_type.lower()) == ItemKind.TODO:
                item = ws.list.set_todo_done(item_id, done, utcnow())
            else:
                item = ws.list.set_task_done(item_id, done)
        except NotFound as exc:
            fail(str(exc))
        ws.save()
        state = "[green]done[/]" if done else "[yellow]not done[/]"
        console.print(f"  {item_type.lower().capitalize()} {escape(str(item))} marked {state}")

    @main.command("do")
    @home_option
    @click.argument("item_type", type=KIND_CHOICE)
    @click.argument("item_id", type=click.IntRange(min=0))
    def do(home: str, item_type: str, item_id: int):
        """Mark an item done."""
        _toggle(home, item_type, item_id, True)

    @main.command("undo")
    @home_option
    @click.argument("item_type", type=KIND_CHOICE)
    @click.argument("item_id", type=click.IntRange(min=0))
    def undo(home: str, item_type: str, item_id: int):
        """Mark an item not done."""
        _toggle(home, item_type, item_id, False)
