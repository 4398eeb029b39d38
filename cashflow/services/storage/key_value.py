"""
Key-Value Store Implementations

Two backends for the KeyValueStore interface:
- InMemoryKeyValueStore: for tests and throwaway sessions
- JsonFileKeyValueStore: one JSON object on local disk

TRADEOFFS of the file backend:
- Every write rewrites the whole file (fine: the tree is small)
- No locking (single process, single writer)
- Writes go to a temp file first and are renamed into place, so a
  crash mid-write leaves the previous snapshot intact
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cashflow.services.storage.interface import (
    KeyValueStore,
    PersistenceCorruption,
    StorageError,
)


logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Stores all keys in a single JSON object on disk.

    The file is read lazily on first access and cached.
    Every mutation rewrites the file atomically.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._cache: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        """Read the backing file into the cache."""
        if self._cache is not None:
            return self._cache

        if not self._path.exists():
            self._cache = {}
            return self._cache

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not raw.strip():
            self._cache = {}
            return self._cache

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceCorruption(f"{self._path} is not valid JSON: {e}")

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise PersistenceCorruption(
                f"{self._path} does not hold a string-to-string mapping"
            )

        self._cache = data
        return self._cache

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_file(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _flush(self, data: dict[str, str]) -> None:
        try:
            self._write_file(data)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")
        self._cache = data

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = dict(self._load())
        data[key] = value
        self._flush(data)

    def remove(self, key: str) -> None:
        data = dict(self._load())
        if key in data:
            del data[key]
            self._flush(data)

    def clear(self) -> None:
        # Must work even when the current file is corrupt
        self._flush({})
        logger.info("key_value_store_cleared", path=str(self._path))
