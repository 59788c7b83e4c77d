"""Shared test fixtures for mtd."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from mtd.storage import CollectionStore
from mtd.sync import SyncServer

SECRET = b"Very secure passwd"
NOW = datetime(2022, 6, 13, 12, 0, tzinfo=timezone.utc)  # a Monday


@pytest.fixture
def now() -> datetime:
    """A fixed evaluation instant."""
    return NOW


@pytest.fixture
def mtd_home(tmp_path: Path) -> Path:
    """Provide a temporary MTD home directory."""
    home = tmp_path / ".mtd"
    home.mkdir()
    return home


@pytest.fixture
def server_store(tmp_path: Path) -> CollectionStore:
    return CollectionStore(tmp_path / "server" / "items.json")


@pytest.fixture
def client_store(tmp_path: Path) -> CollectionStore:
    return CollectionStore(tmp_path / "client" / "items.json")


@pytest.fixture
def running_server(server_store: CollectionStore) -> Iterator[SyncServer]:
    """A SyncServer on a free loopback port, served from a thread."""
    server = SyncServer(("127.0.0.1", 0), server_store, SECRET, timeout=2.0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=3)
