import fcntl
import logging
import os
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A value could not be written to (or removed from) durable storage."""


class KeyValueStorage:
    """
    Namespaced string storage, one file per key.

    Every write replaces the whole value atomically (temp file, fsync, rename),
    so readers never observe a partially written value. With persist=False the
    values live in memory only, which is what dry runs and tests use.
    """

    def __init__(self, directory: str, namespace: str = "fieldsync", persist: bool = True):
        self.directory = Path(directory)
        self.namespace = namespace
        self.persist = persist
        self._memory: Dict[str, str] = {}
        if self.persist:
            self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self.namespace}_{key}.json"

    async def get_item(self, key: str) -> Optional[str]:
        if not self.persist:
            return self._memory.get(key)

        path = self._path(key)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    async def set_item(self, key: str, value: str) -> None:
        if not self.persist:
            self._memory[key] = value
            return

        path = self._path(key)
        tmp_path = path.with_suffix('.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                try:
                    fcntl.flock(f, fcntl.LOCK_EX | fcntl.LOCK_NB)
                except BlockingIOError:
                    raise StorageError(f"{path} is locked by another writer")

                try:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    fcntl.flock(f, fcntl.LOCK_UN)

            # Atomic rename
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Failed to write {key}") from e

    async def remove_item(self, key: str) -> None:
        if not self.persist:
            self._memory.pop(key, None)
            return

        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove {key}: {e}")
            raise StorageError(f"Failed to remove {key}") from e
