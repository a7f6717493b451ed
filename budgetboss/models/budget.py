"""
Core Data Models for BudgetBoss

These models define the strict schemas for all budget data stored locally
and exchanged with the remote store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to plain JSON for the key-value replica and remote rows
4. Share one sync contract (id, created_at, updated_at, deleted)

DESIGN DECISION: Every remotely synced entity derives from SyncableRecord.
The sync engine is written once against that base class and instantiated
per concrete table.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, TypeVar
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

LOCAL_OWNER_ID = "local-user"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC so comparisons never mix kinds
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CategoryHealth(str, Enum):
    """
    Spending health of a category.

    An unbudgeted category (nothing available) is always healthy.
    """
    HEALTHY = "healthy"
    WARNING = "warning"
    OVERSPENT = "overspent"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


# =============================================================================
# SYNCABLE RECORDS
# =============================================================================

class SyncableRecord(BaseModel):
    """
    Base for every record that takes part in push/pull/merge.

    Records are never physically removed from the remote store;
    a deletion is a row with deleted=True.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str = Field(
        default_factory=new_id,
        description="Opaque unique identifier"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted: bool = Field(
        default=False,
        description="Soft-delete flag"
    )

    @field_validator('created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def touched(self: "RecordT", **updates) -> "RecordT":
        """
        Return a validated copy with `updates` applied and a fresh updated_at.
        """
        data = self.model_dump()
        data.update(updates)
        data["updated_at"] = utc_now()
        return type(self).model_validate(data)

    def to_row(self) -> dict:
        """Serialize to a JSON-compatible row."""
        return self.model_dump(mode="json")


RecordT = TypeVar("RecordT", bound=SyncableRecord)


class Budget(SyncableRecord):
    """
    One budget per (owner, calendar month).

    Created lazily the first time a month is loaded.
    """

    user_id: str = Field(
        default=LOCAL_OWNER_ID,
        description="Owner; the local placeholder while unauthenticated"
    )
    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Calendar month, YYYY-MM"
    )
    name: str = Field(
        default="My Budget",
        min_length=1,
        max_length=200
    )


class Income(SyncableRecord):
    """An income line belonging to one budget."""

    budget_id: str
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)


class FixedExpense(SyncableRecord):
    """A recurring bill (rent, subscriptions) committed for the month."""

    budget_id: str
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)


class Category(SyncableRecord):
    """
    A spending category with a budgeted target.

    `borrowed` is signed: positive means capacity received from another
    category, negative means capacity lent out. Across one budget the
    borrowed values always sum to zero.
    """

    budget_id: str
    name: str = Field(..., min_length=1, max_length=200)
    budgeted: Decimal = Field(default=Decimal("0"), ge=0)
    borrowed: Decimal = Field(default=Decimal("0"))
    color: str = Field(default="#3B82F6")
    notes: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Breakdown notes and reminders"
    )

    @property
    def available(self) -> Decimal:
        return self.budgeted + self.borrowed


class Transaction(SyncableRecord):
    """
    A single spend.

    Unplanned transactions are never attached to a category; they are
    counted against total spend only.
    """

    budget_id: str
    category_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=3, max_length=500)
    account: str = Field(default="Cash", min_length=1)
    is_unplanned: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_unplanned", "is_emergency"),
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="User-editable transaction date, distinct from created_at"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator('category_id', mode='before')
    @classmethod
    def blank_category_is_none(cls, v):
        if v == "":
            return None
        return v

    @model_validator(mode='after')
    def drop_category_when_unplanned(self) -> 'Transaction':
        if self.is_unplanned:
            self.category_id = None
        return self

    @property
    def month(self) -> str:
        """YYYY-MM of the transaction date (drives the month index)."""
        return self.date.strftime("%Y-%m")


class UserSettings(SyncableRecord):
    """Single user preference record."""

    user_id: str = Field(default=LOCAL_OWNER_ID)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    first_day_of_week: int = Field(default=1, ge=0, le=6)
    theme: Theme = Field(default=Theme.LIGHT)


# =============================================================================
# LOCAL-ONLY RECORDS
# =============================================================================

class TransactionPattern(BaseModel):
    """
    Learned usage of a (description, category) pair.

    Purely a local cache - never synced.
    """

    description: str
    category_id: str
    count: int = Field(default=1, ge=1)
    last_amount: Decimal
    last_used: datetime = Field(default_factory=utc_now)

    @field_validator('last_used')
    @classmethod
    def normalize_last_used(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PlanData(BaseModel):
    """The per-month bundle of budget, incomes, fixed expenses and categories."""

    budget: Optional[Budget] = None
    incomes: list[Income] = Field(default_factory=list)
    fixed_expenses: list[FixedExpense] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)


# =============================================================================
# IN-MEMORY STATE
# =============================================================================

class BudgetState(BaseModel):
    """Snapshot of the current month held by the budget store."""

    budget: Optional[Budget] = None
    incomes: list[Income] = Field(default_factory=list)
    fixed_expenses: list[FixedExpense] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    loading: bool = False


class CategoryWithSpent(Category):
    """Category plus its computed spend metrics. Never persisted."""

    spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    health: CategoryHealth = CategoryHealth.HEALTHY


# =============================================================================
# INPUT MODELS
# =============================================================================

class QuickAddData(BaseModel):
    """User input for a new transaction."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=3, max_length=500)
    category_id: Optional[str] = None
    account: str = Field(default="Cash", min_length=1)
    is_unplanned: bool = False
    date: Optional[datetime] = Field(
        default=None,
        description="Defaults to now when omitted"
    )


class BorrowData(BaseModel):
    """Transfer of budgeted capacity between two categories."""

    from_category_id: str
    to_category_id: str
    amount: Decimal = Field(..., gt=0)
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)


class CopyOptions(BaseModel):
    """Which dimensions of a previous month's plan to copy."""

    incomes: bool = True
    fixed_expenses: bool = True
    categories: bool = True


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class FrequentPattern(BaseModel):
    """A quick-repeat suggestion built from a learned pattern."""

    description: str
    category_id: str
    category_name: str
    amount: Decimal
    count: int
    last_used: datetime


class CategoryCount(BaseModel):
    category_id: str
    name: str
    count: int


class CategorySpend(BaseModel):
    name: str
    spent: Decimal
    color: str


class BorrowedLentSummary(BaseModel):
    """Totals of capacity borrowed in and lent out across categories."""

    borrowed: Decimal = Decimal("0")
    lent: Decimal = Decimal("0")


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'same_category', 'exceeds_remaining')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested action for the user"
    )


class ValidationResult(BaseModel):
    """Outcome of validating a user action before it is applied."""

    action: str = Field(
        ...,
        description="Name of the validated action"
    )
    validated_at: datetime = Field(default_factory=utc_now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
