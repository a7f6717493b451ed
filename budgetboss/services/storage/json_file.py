"""
JSON File Key-Value Storage

The durable local primitive: the whole replica is one JSON document on
disk. Writes replace the file atomically (write to a temp file, then
rename) so a crash mid-write leaves the previous document intact.

TRADEOFFS:
- Every write rewrites the whole document (fine for one person's budget)
- No cross-process locking (one app instance owns the file)
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from budgetboss.services.storage.interface import (
    KeyValueStorageInterface,
    StorageError,
)


class JsonFileKeyValueStorage(KeyValueStorageInterface):
    """Key-value store persisted as a single JSON object."""

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._cache: Optional[dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._cache is None:
            if not self._path.exists():
                self._cache = {}
            else:
                try:
                    with self._path.open("r", encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    raise StorageError(f"Failed to read {self._path}: {e}")
                if not isinstance(data, dict):
                    raise StorageError(f"{self._path} does not hold a JSON object")
                self._cache = data
        return self._cache

    def _flush(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write {self._path}: {e}")

    async def get(self, key: str) -> Optional[Any]:
        value = self._load().get(key)
        # Hand out a copy so callers cannot mutate the cache
        return json.loads(json.dumps(value)) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        try:
            encoded = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not JSON-serializable: {e}")
        data = dict(self._load())
        data[key] = encoded
        self._flush(data)
        self._cache = data

    async def delete(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        data = dict(data)
        del data[key]
        self._flush(data)
        self._cache = data

    async def list_keys(self) -> list[str]:
        return list(self._load().keys())
