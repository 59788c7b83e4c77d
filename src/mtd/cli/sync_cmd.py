"""Sync commands: sync (client) and server."""

from __future__ import annotations

import logging

import click
from rich.markup import escape

from ._common import Workspace, console, fail, home_option, logger
from ..errors import (
    AuthenticationFailure,
    ConnectionClosed,
    ConnectionRefused,
    MalformedPayload,
    MtdError,
    StorageError,
    Timeout,
)
from ..sync import SyncClient, SyncServer

FAILURE_HINTS = {
    ConnectionRefused: "Could not reach the server. Is `mtd server` running?",
    Timeout: "The peer took too long to answer.",
    ConnectionClosed: "The connection dropped before the exchange finished.",
    AuthenticationFailure: "The peer's data did not decrypt. Do both sides use the same secret?",
    MalformedPayload: "The peer sent data this version cannot read.",
    StorageError: "The local list could not be read, so nothing was synced.",
}


def _hint(exc: MtdError) -> str:
    for exc_type, hint in FAILURE_HINTS.items():
        if isinstance(exc, exc_type):
            return hint
    return "Sync failed."


def register_sync_commands(main: click.Group) -> None:
    """Register the sync and server commands."""

    @main.command("sync")
    @home_option
    def sync(home: str):
        """Synchronize items with the configured server."""
        ws = Workspace(home)
        if not ws.config.secret:
            fail("No shared secret configured. Run [cyan]mtd init[/cyan] first.")

        client = SyncClient(
            ws.config.server_address(),
            ws.store,
            ws.config.shared_secret(),
            ws.config.io_timeout(),
        )
        host, port = ws.config.server_address()
        console.print(f"\n  Syncing with [cyan]{host}:{port}[/]...", end=" ")
        try:
            outcome = client.sync()
        except MtdError as exc:
            console.print("[red]failed[/]")
            fail(f"{_hint(exc)}\n  [dim]{escape(str(exc))}[/]")

        console.print("[green]done[/]")
        report = outcome.report
        console.print(
            f"  {len(outcome.collection.todos)} todos, "
            f"{len(outcome.collection.tasks)} tasks"
        )
        if report.changed:
            console.print(
                f"  [dim]new: {report.todos_added + report.tasks_added}, "
                f"completed elsewhere: {report.todos_completed + report.tasks_completed}, "
                f"expired: {report.todos_expired}[/]"
            )
        console.print()

    @main.command("server")
    @home_option
    @click.option("--host", default=None, help="Override the configured bind host.")
    @click.option("--port", default=None, type=int, help="Override the configured port.")
    def server(home: str, host, port):
        """Run this instance as the sync server."""
        ws = Workspace(home)
        if not ws.config.secret:
            fail("No shared secret configured. Run [cyan]mtd init[/cyan] first.")

        if not logging.getLogger().handlers:
            logging.basicConfig(
                level=logging.INFO,
                format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            )

        address = (host or ws.config.host, ws.config.port if port is None else port)
        try:
            srv = SyncServer(
                address,
                ws.store,
                ws.config.shared_secret(),
                ws.config.io_timeout(),
            )
        except OSError as exc:
            fail(f"Could not listen on {address[0]}:{address[1]}: {exc}")

        with srv:
            console.print(
                f"\n  [green]Serving[/] on [cyan]{address[0]}:{srv.port}[/]"
                f"  [dim](Ctrl+C to stop)[/]\n"
            )
            logger.info("Sync server listening on %s:%d", address[0], srv.port)
            try:
                srv.serve_forever()
            except KeyboardInterrupt:
                console.print(
                    f"\n  Stopped after {srv.sessions_completed} sync(s), "
                    f"{srv.sessions_failed} failed.\n"
                )
