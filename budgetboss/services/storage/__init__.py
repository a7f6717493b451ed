"""
Storage Services Package

Provides the abstract storage interfaces, the local replica, and the
remote backends. Google Sheets is the remote backend, but the sync
engine only ever sees RemoteStoreInterface.
"""

from budgetboss.services.storage.interface import (
    DuplicateError,
    KeyValueStorageInterface,
    RemoteStoreInterface,
    RemoteUnavailableError,
    RowFilter,
    StorageError,
    UNIQUE_TOGETHER,
)
from budgetboss.services.storage.memory import (
    InMemoryKeyValueStorage,
    InMemoryRemoteStore,
)
from budgetboss.services.storage.json_file import JsonFileKeyValueStorage
from budgetboss.services.storage.local_db import LocalRecordStore
from budgetboss.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "KeyValueStorageInterface",
    "RemoteStoreInterface",
    "RowFilter",
    "UNIQUE_TOGETHER",
    # Exceptions
    "DuplicateError",
    "RemoteUnavailableError",
    "StorageError",
    # Local replica
    "InMemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
    "LocalRecordStore",
    # Remote backends
    "InMemoryRemoteStore",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
]
