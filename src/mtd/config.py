"""
Configuration -- where the server lives and how to reach it.

Stored as YAML at <MTD_HOME>/config.yaml:

    host: 127.0.0.1
    port: 55995
    secret: correct horse battery staple
    timeout_seconds: 10
    save_location: ~/.mtd/items.json

A missing file means defaults. A broken file is logged and
replaced by defaults rather than stopping every command.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from . import MTD_HOME

logger = logging.getLogger("mtd.config")

CONFIG_FILE = "config.yaml"
ITEMS_FILE = "items.json"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 55995


class MtdConfig(BaseModel):
    """Settings shared by the CLI, the sync client and the server."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    secret: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)
    save_location: Optional[Path] = None

    def server_address(self) -> tuple[str, int]:
        return (self.host, self.port)

    def shared_secret(self) -> bytes:
        return self.secret.encode("utf-8")

    def io_timeout(self) -> float:
        return self.timeout_seconds

    def items_path(self, home: Path) -> Path:
        """Where the list is stored, defaulting to <home>/items.json."""
        if self.save_location is not None:
            return self.save_location.expanduser()
        return home / ITEMS_FILE


def resolve_home(home: Optional[Path] = None) -> Path:
    return Path(home or MTD_HOME).expanduser()


def load_config(home: Optional[Path] = None) -> MtdConfig:
    """Load configuration from <home>/config.yaml.

    Returns:
        MtdConfig from disk, or defaults if missing or unreadable.
    """
    config_file = resolve_home(home) / CONFIG_FILE
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return MtdConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config, using defaults: %s", exc)
    return MtdConfig()


def save_config(config: MtdConfig, home: Optional[Path] = None) -> Path:
    """Write configuration to <home>/config.yaml.

    Returns:
        Path of the written file.
    """
    home_path = resolve_home(home)
    home_path.mkdir(parents=True, exist_ok=True)
    config_file = home_path / CONFIG_FILE
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    config_file.chmod(0o600)
    logger.info("Wrote config to %s", config_file)
    return config_file
