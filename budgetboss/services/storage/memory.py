"""
In-Memory Storage Implementations

Used for tests and for running without any durable backend.
Values are deep-copied on the way in and out so callers can never
mutate stored state by accident.
"""

import copy
from typing import Any, Optional

from budgetboss.models.budget import new_id, utc_now
from budgetboss.services.storage.interface import (
    DuplicateError,
    KeyValueStorageInterface,
    RemoteStoreInterface,
    RowFilter,
    UNIQUE_TOGETHER,
)


class InMemoryKeyValueStorage(KeyValueStorageInterface):
    """Dictionary-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self) -> list[str]:
        return list(self._data.keys())


class InMemoryRemoteStore(RemoteStoreInterface):
    """
    Dictionary-backed remote store.

    Mirrors the relational backend closely enough for sync tests:
    ids are unique per table and budgets are unique per (owner, month).
    """

    def __init__(
        self,
        unique_together: Optional[dict[str, tuple[str, ...]]] = None,
    ):
        self._tables: dict[str, dict[str, dict]] = {}
        self._unique_together = (
            UNIQUE_TOGETHER if unique_together is None else unique_together
        )

    def _table(self, table: str) -> dict[str, dict]:
        return self._tables.setdefault(table, {})

    def _check_unique(self, table: str, row: dict) -> None:
        columns = self._unique_together.get(table)
        if not columns or row.get("deleted"):
            return
        key = tuple(row.get(c) for c in columns)
        for existing in self._table(table).values():
            if existing["id"] == row["id"] or existing.get("deleted"):
                continue
            if tuple(existing.get(c) for c in columns) == key:
                raise DuplicateError(
                    f"{table} already has a row for {dict(zip(columns, key))}"
                )

    def _with_defaults(self, row: dict) -> dict:
        now = utc_now().isoformat()
        stored = copy.deepcopy(row)
        stored.setdefault("id", new_id())
        stored.setdefault("created_at", now)
        stored.setdefault("updated_at", now)
        stored.setdefault("deleted", False)
        return stored

    async def select(
        self,
        table: str,
        filters: Optional[list[RowFilter]] = None,
    ) -> list[dict]:
        rows = [
            row for row in self._table(table).values()
            if all(f.matches(row) for f in (filters or []))
        ]
        return copy.deepcopy(rows)

    async def get(self, table: str, record_id: str) -> Optional[dict]:
        return copy.deepcopy(self._table(table).get(record_id))

    async def insert(self, table: str, row: dict) -> dict:
        stored = self._with_defaults(row)
        if stored["id"] in self._table(table):
            raise DuplicateError(f"{table} already has id {stored['id']}")
        self._check_unique(table, stored)
        self._table(table)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def upsert(self, table: str, row: dict) -> dict:
        stored = self._with_defaults(row)
        self._check_unique(table, stored)
        self._table(table)[stored["id"]] = stored
        return copy.deepcopy(stored)

    def rows(self, table: str) -> list[dict]:
        """Snapshot of every row in a table (for inspection)."""
        return copy.deepcopy(list(self._table(table).values()))
