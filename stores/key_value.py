"""
Durable key-value storage on the local filesystem.

Each key is one JSON file in the data directory. Writes go to a temporary
file that is then renamed over the target, so a crash mid-write never
leaves a half-written collection behind, and a write is visible to the
next read as soon as it returns.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from core.exceptions import StorageError, StorageQuotaExceededError
from logging_config import get_logger


logger = get_logger(__name__)


class KeyValueStore:
    """
    JSON values stored under string keys.

    Args:
        directory: Where the files live (created on first write)
        max_bytes: Size cap per value; None disables the cap
    """

    def __init__(self, directory: Path, max_bytes: Optional[int] = None):
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        """
        Load the value for key.

        Returns None when the key has never been written. A file that is not
        valid JSON is logged and treated as missing.
        """
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt value for {key} at {path}: {e}")
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {key}: {e}", {"path": str(path)})

    def set(self, key: str, value: Any) -> None:
        """
        Replace the value for key.

        Raises:
            StorageQuotaExceededError: Serialized value is over max_bytes
            StorageError: The file could not be written
        """
        payload = json.dumps(value, ensure_ascii=False).encode("utf-8")
        if self.max_bytes is not None and len(payload) > self.max_bytes:
            raise StorageQuotaExceededError(key, len(payload), self.max_bytes)

        path = self._path(key)
        with self._lock:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{key}.", suffix=".tmp", dir=self.directory
                )
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(payload)
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp_name, path)
                except BaseException:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except OSError as e:
                raise StorageError(f"Cannot write {key}: {e}", {"path": str(path)})

        logger.debug(f"Wrote {len(payload)} bytes to {key}")

    def remove(self, key: str) -> None:
        """Delete key if present."""
        with self._lock:
            try:
                self._path(key).unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StorageError(f"Cannot remove {key}: {e}")
