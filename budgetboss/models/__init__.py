"""
Data Models Package

This package contains all Pydantic models used in BudgetBoss.
All data stored locally or exchanged with the remote store must conform
to these schemas.
"""

from budgetboss.models.budget import (
    LOCAL_OWNER_ID,
    BorrowData,
    BorrowedLentSummary,
    Budget,
    BudgetState,
    Category,
    CategoryCount,
    CategoryHealth,
    CategorySpend,
    CategoryWithSpent,
    CopyOptions,
    FixedExpense,
    FrequentPattern,
    Income,
    PlanData,
    QuickAddData,
    SyncableRecord,
    Theme,
    Transaction,
    TransactionPattern,
    UserSettings,
    ValidationIssue,
    ValidationResult,
    new_id,
    utc_now,
)
from budgetboss.models.sync import SyncReport, SyncState
from budgetboss.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "LOCAL_OWNER_ID",
    "BorrowData",
    "BorrowedLentSummary",
    "Budget",
    "BudgetState",
    "Category",
    "CategoryCount",
    "CategoryHealth",
    "CategorySpend",
    "CategoryWithSpent",
    "CopyOptions",
    "FixedExpense",
    "FrequentPattern",
    "Income",
    "PlanData",
    "QuickAddData",
    "SyncableRecord",
    "Theme",
    "Transaction",
    "TransactionPattern",
    "UserSettings",
    "ValidationIssue",
    "ValidationResult",
    "new_id",
    "utc_now",
    # Sync models
    "SyncReport",
    "SyncState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
