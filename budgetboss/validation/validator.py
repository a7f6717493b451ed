"""
Caller-Side Validation

DESIGN DECISION: The budget store applies whatever it is given.
Business rules that need the current month's numbers are checked here,
before a mutation is issued, in two stages:

STAGE 1 - STRUCTURE:
- Referenced categories exist
- Two-sided operations name two different records

STAGE 2 - SEMANTICS:
- Amounts fit what is left in the category
- Accounts are ones the app knows about

Stage 2 only runs when stage 1 found no errors.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the caller can show them to the user.
"""

from typing import Iterable, Optional

from budgetboss import selectors
from budgetboss.models.budget import (
    BorrowData,
    BudgetState,
    Category,
    QuickAddData,
    ValidationIssue,
    ValidationResult,
)


KNOWN_ACCOUNTS = ("Cash", "Bank Transfer")


class BudgetValidator:
    """
    Validates user actions against the current month snapshot.
    """

    def __init__(self, known_accounts: Optional[Iterable[str]] = None):
        self._known_accounts = tuple(known_accounts or KNOWN_ACCOUNTS)

    def validate_borrow(self, state: BudgetState, data: BorrowData) -> ValidationResult:
        """
        Check a transfer of capacity between two categories.

        Errors:
        - either category is unknown
        - both sides are the same category
        - amount exceeds what the source category has left
        """
        issues = []
        by_id = {c.id: c for c in state.categories}

        for field, category_id in (
            ("from_category_id", data.from_category_id),
            ("to_category_id", data.to_category_id),
        ):
            if category_id not in by_id:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="unknown_category",
                    message=f"Category {category_id} is not part of this month's plan",
                    severity="error",
                    suggested_fix="Reload the month and pick the category again",
                ))

        if data.from_category_id == data.to_category_id:
            issues.append(ValidationIssue(
                field="to_category_id",
                issue_type="same_category",
                message="Cannot borrow from and to the same category",
                severity="error",
                suggested_fix="Choose a different category to borrow into",
            ))

        if not any(issue.severity == "error" for issue in issues):
            issues.extend(self._check_remaining(state, by_id[data.from_category_id], data))

        return ValidationResult(action="borrow", issues=issues)

    def _check_remaining(
        self,
        state: BudgetState,
        source: Category,
        data: BorrowData,
    ) -> list[ValidationIssue]:
        spent = selectors.category_spent(source.id, state.transactions)
        remaining = source.available - spent
        if data.amount > remaining:
            return [ValidationIssue(
                field="amount",
                issue_type="exceeds_remaining",
                message=(
                    f"Cannot borrow {data.amount}; only {remaining} remaining "
                    f"in {source.name}"
                ),
                severity="error",
                suggested_fix="Borrow a smaller amount or pick another category",
            )]
        return []

    def validate_quick_add(
        self,
        data: QuickAddData,
        categories: list[Category],
    ) -> ValidationResult:
        """
        Check a new transaction before it is added.

        The model already enforces amount > 0 and a 3-character
        description; this adds the checks that need the month's plan.
        """
        issues = []

        if not data.is_unplanned:
            if not data.category_id:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="missing",
                    message="Planned transactions need a category",
                    severity="error",
                    suggested_fix="Pick a category or mark the spend as unplanned",
                ))
            elif data.category_id not in {c.id for c in categories}:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="unknown_category",
                    message=f"Category {data.category_id} is not part of this month's plan",
                    severity="error",
                ))

        if data.account not in self._known_accounts:
            issues.append(ValidationIssue(
                field="account",
                issue_type="unknown_account",
                message=f"Account '{data.account}' is not one of {', '.join(self._known_accounts)}",
                severity="warning",
                suggested_fix="Check the account name for typos",
            ))

        return ValidationResult(action="quick_add", issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        One message per line, errors first.
        """
        if not result.issues:
            return "All checks passed."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("This can't be saved yet:")
            for issue in errors:
                lines.append(f"  - {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"    {issue.suggested_fix}")

        if result.warnings:
            lines.append("Please double-check:")
            for warning in result.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines)
