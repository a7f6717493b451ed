"""
Abstract Storage Interfaces

DESIGN DECISION: Both storage collaborators are defined as abstract
interfaces. This allows us to:
1. Swap Google Sheets for a relational database later
2. Use in-memory storage for testing
3. Keep the sync engine decoupled from any backend

The interfaces are intentionally small - we're not building an ORM.

KeyValueStorageInterface is the local persistence primitive
(get/set/delete/list-keys). RemoteStoreInterface is a collection of
row-tables keyed by id, where every row carries `updated_at` and
`deleted`. Rows cross this boundary as JSON-compatible dicts.
"""

from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

from pydantic import BaseModel


# Column sets that must be unique among non-deleted rows of a remote table
UNIQUE_TOGETHER: dict[str, tuple[str, ...]] = {
    "budgets": ("user_id", "month"),
    "settings": ("user_id",),
}


class KeyValueStorageInterface(ABC):
    """
    Durable key-value persistence for the local replica.

    Values are JSON-compatible structures.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The stored value, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """Return every stored key."""
        pass


class RowFilter(BaseModel):
    """
    A single column predicate for remote selects.

    Values are compared in their JSON form, so ISO dates compare as
    strings (the month range uses "{month}-32" as exclusive upper bound).
    """

    column: str
    op: Literal["eq", "gte", "lt"] = "eq"
    value: Any

    def matches(self, row: dict) -> bool:
        actual = row.get(self.column)
        if self.op == "eq":
            return actual == self.value
        if actual is None:
            return False
        if self.op == "gte":
            return str(actual) >= str(self.value)
        return str(actual) < str(self.value)

    @classmethod
    def eq(cls, column: str, value: Any) -> "RowFilter":
        return cls(column=column, op="eq", value=value)

    @classmethod
    def gte(cls, column: str, value: Any) -> "RowFilter":
        return cls(column=column, op="gte", value=value)

    @classmethod
    def lt(cls, column: str, value: Any) -> "RowFilter":
        return cls(column=column, op="lt", value=value)


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote authoritative store.

    Any remote implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Owner scoping is enforced by the
    backend's own access policy.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[list[RowFilter]] = None,
    ) -> list[dict]:
        """
        Return all rows of `table` matching every filter.

        Raises:
            RemoteUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Optional[dict]:
        """
        Return the row with this id, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict) -> dict:
        """
        Insert a new row and return it as stored.

        Raises:
            DuplicateError: If the id or a unique column set already exists
        """
        pass

    @abstractmethod
    async def upsert(self, table: str, row: dict) -> dict:
        """
        Insert or replace the row with the same id and return it as stored.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class RemoteUnavailableError(StorageError):
    """Could not reach the remote store."""
    pass
