"""
Sync Bookkeeping Models

SyncState is persisted in the local replica; SyncReport is returned to the
caller after each full sync so the UI can say what happened.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from budgetboss.models.budget import utc_now


class SyncState(BaseModel):
    """Persisted under the `syncState` key."""

    last_sync: Optional[datetime] = None
    pending_changes: list[str] = Field(
        default_factory=list,
        description="Ids of records with local changes not yet pushed"
    )


class SyncReport(BaseModel):
    """Summary of one full sync pass for one month."""

    month: str
    owner_id: str
    budget_id: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    pushed: int = Field(default=0, ge=0, description="Records upserted remotely")
    pulled: int = Field(default=0, ge=0, description="Remote records adopted locally")
    failed_ids: list[str] = Field(
        default_factory=list,
        description="Records whose push failed; they stay pending"
    )
    plan_merged: bool = Field(
        default=False,
        description="False when the pull step fell back to the local plan"
    )
    transactions_synced: bool = False

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_ids) or not self.plan_merged or not self.transactions_synced
