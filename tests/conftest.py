"""
Shared fixtures.

Everything runs in memory: no files, no network. The remote store is
InMemoryRemoteStore, which enforces the same uniqueness rules as the
real backend.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from budgetboss.audit import AuditLogger
from budgetboss.config import AppSettings
from budgetboss.services.storage import (
    InMemoryKeyValueStorage,
    InMemoryRemoteStore,
    LocalRecordStore,
    StorageError,
)
from budgetboss.store import BudgetStore
from budgetboss.sync import SyncEngine


MONTH = "2025-08"


class FailingKeyValueStorage(InMemoryKeyValueStorage):
    """In-memory storage whose reads and/or writes can be switched to fail."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        super().__init__(initial)
        self.fail_reads = False
        self.fail_writes = False
        self.write_attempts = 0

    async def get(self, key: str) -> Optional[Any]:
        if self.fail_reads:
            raise StorageError("disk unavailable")
        return await super().get(key)

    async def set(self, key: str, value: Any) -> None:
        self.write_attempts += 1
        if self.fail_writes:
            raise StorageError("disk full")
        await super().set(key, value)


def at(day: int, hour: int = 12, month: int = 8) -> datetime:
    """An aware UTC timestamp in 2025."""
    return datetime(2025, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(persist_retry_attempts=2, persist_retry_wait_seconds=0.0)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def kv_storage() -> FailingKeyValueStorage:
    return FailingKeyValueStorage()


@pytest.fixture
def local_db(kv_storage, audit_logger) -> LocalRecordStore:
    return LocalRecordStore(kv_storage, audit_logger)


@pytest.fixture
def store(local_db, audit_logger, app_settings) -> BudgetStore:
    return BudgetStore(local_db, audit_logger, app_settings, current_month=MONTH)


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def engine(local_db, remote, audit_logger, app_settings) -> SyncEngine:
    return SyncEngine(local_db, remote, audit_logger, settings=app_settings)
