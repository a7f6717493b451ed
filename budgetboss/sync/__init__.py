"""Sync package."""

from budgetboss.sync.engine import (
    BUDGETS,
    CATEGORIES,
    FIXED_EXPENSES,
    INCOMES,
    SETTINGS,
    TRANSACTIONS,
    SyncEngine,
    SyncError,
    SyncTable,
    SyncUnavailableError,
)
from budgetboss.sync.merge import Resolver, last_write_wins, merge_records

__all__ = [
    # Engine
    "SyncEngine",
    "SyncTable",
    "BUDGETS",
    "INCOMES",
    "FIXED_EXPENSES",
    "CATEGORIES",
    "TRANSACTIONS",
    "SETTINGS",
    # Errors
    "SyncError",
    "SyncUnavailableError",
    # Merge
    "Resolver",
    "last_write_wins",
    "merge_records",
]
