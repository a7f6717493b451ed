"""
Audit Logger

DESIGN DECISION: Every mutation and every sync step is logged.
This provides:
1. Traceability of optimistic updates that failed to persist
2. Visibility into partial sync failures (which ids stayed pending)
3. A recent-events buffer the UI can show as sync history

The audit logger:
- Is async so it can be awaited inside store and sync flows
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace all events of one sync pass
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from budgetboss.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log and keeps the most recent
    ones in memory.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("budgetboss.audit")
        self._recent: deque[AuditEvent] = deque(maxlen=history_size)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written to the local log.
        """
        self._recent.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # Logging must never break the main flow
            return False

        return True

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._recent))[:limit]

    def events_for_correlation(self, correlation_id: UUID) -> list[AuditEvent]:
        """All buffered events of one sync pass in chronological order."""
        return [e for e in self._recent if e.correlation_id == correlation_id]

    async def log_mutation(
        self,
        action: str,
        entity_type: str,
        entity_ids: list[str],
    ) -> None:
        """Log an applied store mutation."""
        await self.log(AuditEventBuilder.mutation_applied(
            action=action,
            entity_type=entity_type,
            entity_ids=entity_ids,
        ))

    async def log_persist_failed(
        self,
        action: str,
        entity_ids: list[str],
        error_message: str,
    ) -> None:
        """Log a local write that failed after retries."""
        await self.log(AuditEventBuilder.persist_failed(
            action=action,
            entity_ids=entity_ids,
            error_message=error_message,
        ))

    async def log_record_push_failed(
        self,
        table: str,
        record_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a single record that could not be pushed."""
        await self.log(AuditEventBuilder.record_push_failed(
            table=table,
            record_id=record_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a sync pass and pass it through every step.
    """
    return uuid4()
