"""Services package."""

from budgetboss.services.identity import IdentityProvider, StaticIdentityProvider
from budgetboss.services.storage import (
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryKeyValueStorage,
    InMemoryRemoteStore,
    JsonFileKeyValueStorage,
    KeyValueStorageInterface,
    LocalRecordStore,
    RemoteStoreInterface,
    RemoteUnavailableError,
    RowFilter,
    StorageError,
)

__all__ = [
    # Identity
    "IdentityProvider",
    "StaticIdentityProvider",
    # Storage services
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryKeyValueStorage",
    "InMemoryRemoteStore",
    "JsonFileKeyValueStorage",
    "KeyValueStorageInterface",
    "LocalRecordStore",
    "RemoteStoreInterface",
    "RemoteUnavailableError",
    "RowFilter",
    "StorageError",
]
