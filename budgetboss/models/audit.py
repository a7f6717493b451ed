"""
Audit Models for BudgetBoss

Every mutation and every sync step is described by an AuditEvent.
This provides:
1. Traceability of what the store did with a user action
2. Debugging information when a sync partially fails
3. A record of which ids failed to push and why

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from budgetboss.models.budget import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Local state
    MONTH_LOADED = "month_loaded"
    MONTH_LOAD_FAILED = "month_load_failed"
    BUDGET_CREATED_LOCALLY = "budget_created_locally"
    MUTATION_APPLIED = "mutation_applied"
    PERSIST_FAILED = "persist_failed"
    PREVIOUS_MONTH_COPIED = "previous_month_copied"
    VALIDATION_FAILED = "validation_failed"
    LOCAL_READ_FAILED = "local_read_failed"

    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_SKIPPED = "sync_skipped"
    BUDGET_ADOPTED = "budget_adopted"
    BUDGET_CREATED_REMOTELY = "budget_created_remotely"
    RECORD_PUSH_FAILED = "record_push_failed"
    PULL_FAILED = "pull_failed"
    TRANSACTION_SYNC_FAILED = "transaction_sync_failed"
    SETTINGS_SYNCED = "settings_synced"
    SYNC_COMPLETED = "sync_completed"
    SYNC_UNAVAILABLE = "sync_unavailable"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'budget', 'transaction', 'month')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one sync pass share an id
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.mutation_applied("add_income", "income", income.id)
        event = AuditEventBuilder.sync_unavailable(month, error, correlation_id)
    """

    @staticmethod
    def month_loaded(month: str, transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="month",
            entity_id=month,
            description=f"Loaded month {month}",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def month_load_failed(month: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="month",
            entity_id=month,
            description=f"Failed to load month {month}; keeping previous state",
            error_message=error_message,
        )

    @staticmethod
    def budget_created_locally(budget_id: str, month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED_LOCALLY,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Created local budget for {month}",
            details={"month": month},
        )

    @staticmethod
    def mutation_applied(
        action: str,
        entity_type: str,
        entity_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_ids[0] if entity_ids else None,
            description=f"Applied {action}",
            details={"action": action, "entity_ids": entity_ids},
            is_user_action=True,
        )

    @staticmethod
    def persist_failed(
        action: str,
        entity_ids: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_id=entity_ids[0] if entity_ids else None,
            description=f"Could not persist {action}; in-memory state kept",
            details={"action": action, "entity_ids": entity_ids},
            error_message=error_message,
        )

    @staticmethod
    def previous_month_copied(
        source_month: str,
        target_month: str,
        income_count: int,
        category_count: int,
        fixed_expense_count: int = 0,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREVIOUS_MONTH_COPIED,
            entity_type="month",
            entity_id=target_month,
            description=f"Copied plan from {source_month} into {target_month}",
            details={
                "source_month": source_month,
                "incomes": income_count,
                "fixed_expenses": fixed_expense_count,
                "categories": category_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(action: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Rejected {action} with {len(issues)} issues",
            details={"action": action, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def local_read_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_READ_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="key",
            entity_id=key,
            description=f"Local read of {key} failed; using empty value",
            error_message=error_message,
        )

    @staticmethod
    def sync_started(month: str, owner_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Sync started for {month}",
            details={"owner_id": owner_id},
        )

    @staticmethod
    def sync_skipped(month: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="month",
            entity_id=month,
            description=f"Sync skipped: {reason}",
        )

    @staticmethod
    def budget_adopted(
        budget_id: str,
        month: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_ADOPTED,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Adopted remote budget for {month}",
        )

    @staticmethod
    def budget_created_remotely(
        budget_id: str,
        month: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED_REMOTELY,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Created remote budget for {month}",
        )

    @staticmethod
    def record_push_failed(
        table: str,
        record_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_PUSH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=table,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Failed to push {table} record; it stays pending",
            error_message=error_message,
        )

    @staticmethod
    def pull_failed(
        month: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PULL_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description="Pull failed; keeping local plan",
            error_message=error_message,
        )

    @staticmethod
    def transaction_sync_failed(
        month: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description="Transaction sync failed",
            error_message=error_message,
        )

    @staticmethod
    def settings_synced(owner_id: str, direction: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_SYNCED,
            entity_type="settings",
            entity_id=owner_id,
            description=f"Settings synced ({direction})",
            details={"direction": direction},
        )

    @staticmethod
    def sync_completed(
        month: str,
        pushed: int,
        pulled: int,
        failed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Sync completed: {pushed} pushed, {pulled} pulled, {failed} failed",
            details={"pushed": pushed, "pulled": pulled, "failed": failed},
        )

    @staticmethod
    def sync_unavailable(
        month: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description="Sync unavailable - continuing in offline mode",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
