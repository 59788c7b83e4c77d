"""Setup command: write the configuration file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ._common import console, home_option
from ..config import DEFAULT_HOST, DEFAULT_PORT, MtdConfig, load_config, resolve_home, save_config


def register_setup_commands(main: click.Group) -> None:
    """Register the init command."""

    @main.command("init")
    @home_option
    @click.option("--host", default=DEFAULT_HOST, show_default=True, help="Server host.")
    @click.option("--port", default=DEFAULT_PORT, show_default=True, type=int, help="Server port.")
    @click.option("--timeout", default=10.0, show_default=True, type=float, help="I/O timeout in seconds.")
    @click.option("--save-location", default=None, type=click.Path(), help="Where to keep the list.")
    @click.option(
        "--secret",
        prompt="Shared secret",
        hide_input=True,
        confirmation_prompt=True,
        help="Secret shared by the server and every client.",
    )
    def init(
        home: str,
        host: str,
        port: int,
        timeout: float,
        save_location: Optional[str],
        secret: str,
    ):
        """Create or update the configuration.

        Use the same secret on the server and on every client.
        """
        home_path = resolve_home(Path(home))
        previous = load_config(home_path)
        config = MtdConfig(
            host=host,
            port=port,
            secret=secret,
            timeout_seconds=timeout,
            save_location=Path(save_location) if save_location else previous.save_location,
        )
        path = save_config(config, home_path)
        console.print(f"  [green]Config written:[/] {path}")
        console.print(f"  Items: [dim]{config.items_path(home_path)}[/]")
