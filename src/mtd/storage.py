"""
JSON file storage for a TdList.

The list is loaded once when a command starts and written back once
when it ends. Writes go to a sibling temp file that then replaces
the real one, so an interrupted save never leaves half a list behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .errors import StorageError
from .models import TdList

logger = logging.getLogger("mtd.storage")


class CollectionStore:
    """Loads and saves one TdList at a fixed path.

    Args:
        path: Location of the JSON file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load_collection(self) -> TdList:
        """Read the stored list. A missing file is an empty list.

        Raises:
            StorageError: If the file cannot be read or is not a valid list.
        """
        if not self.path.exists():
            logger.debug("No list at %s, starting empty", self.path)
            return TdList()
        try:
            return TdList.from_json(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            raise StorageError(f"Could not read {self.path}: {exc}") from exc

    def save_collection(self, collection: TdList) -> None:
        """Replace the stored list with ``collection``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(collection.to_json())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(
            "Saved %d todos and %d tasks to %s",
            len(collection.todos), len(collection.tasks), self.path,
        )
