"""
Durable JSON Snapshots

File-based state that survives process restarts. Every write goes to a
temporary file in the same directory and is moved into place with
os.replace, so readers never observe a half-written snapshot.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from .logging_setup import get_service_logger

logger = get_service_logger("state")


class JsonSnapshot:
    """
    A single flat JSON object persisted at ``<state_dir>/<key>.json``.

    Attributes:
        path: Location of the snapshot file
    """

    def __init__(self, state_dir: Path, key: str):
        self.state_dir = Path(state_dir)
        self.key = key
        self.path = self.state_dir / f"{key}.json"
        self._lock = threading.Lock()

    def write(self, data: dict[str, Any]) -> None:
        """
        Atomically replace the snapshot.

        Args:
            data: Dictionary to serialize as JSON
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)

        with self._lock:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{self.key}.", suffix=".tmp", dir=self.state_dir
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_name, self.path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise

        logger.debug(f"Snapshot written: {self.path}", extra={"key": self.key})

    def read(self) -> dict[str, Any] | None:
        """
        Read the snapshot.

        Returns:
            Dictionary from the JSON file, or None if missing or corrupt
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable snapshot {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Snapshot {self.path} is not a JSON object")
            return None
        return data

    def delete(self) -> bool:
        """
        Delete the snapshot file.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            if self.path.exists():
                self.path.unlink()
                return True
        return False
