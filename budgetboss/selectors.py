"""
Domain Selectors

Pure functions computing derived views from an in-memory month snapshot.
No I/O, no mutation of their inputs. Deleted transactions never count.
"""

from collections import Counter
from decimal import Decimal
from typing import Iterable

from budgetboss.models.budget import (
    BorrowedLentSummary,
    BudgetState,
    Category,
    CategoryCount,
    CategoryHealth,
    CategorySpend,
    CategoryWithSpent,
    FixedExpense,
    Income,
    Transaction,
)

ZERO = Decimal("0")
DEFAULT_WARNING_THRESHOLD = 0.8
DEFAULT_TOP_LIMIT = 5


def _active(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [tx for tx in transactions if not tx.deleted]


def total_income(incomes: Iterable[Income]) -> Decimal:
    return sum((income.amount for income in incomes), ZERO)


def total_fixed_expenses(expenses: Iterable[FixedExpense]) -> Decimal:
    return sum((expense.amount for expense in expenses if not expense.deleted), ZERO)


def total_budgeted(categories: Iterable[Category]) -> Decimal:
    """Sum of budgeted plus borrowed across categories."""
    return sum((c.budgeted + c.borrowed for c in categories), ZERO)


def total_borrowed(categories: Iterable[Category]) -> Decimal:
    """Net borrowed across categories; zero whenever the plan is consistent."""
    return sum((c.borrowed for c in categories), ZERO)


def total_spent(transactions: Iterable[Transaction]) -> Decimal:
    """Planned plus unplanned spend."""
    return sum((tx.amount for tx in _active(transactions)), ZERO)


def total_unplanned_spent(transactions: Iterable[Transaction]) -> Decimal:
    return sum((tx.amount for tx in _active(transactions) if tx.is_unplanned), ZERO)


def category_spent(category_id: str, transactions: Iterable[Transaction]) -> Decimal:
    return sum(
        (
            tx.amount for tx in _active(transactions)
            if not tx.is_unplanned and tx.category_id == category_id
        ),
        ZERO,
    )


def category_health(
    spent: Decimal,
    available: Decimal,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> CategoryHealth:
    """
    Classify a category's spend.

    Nothing available means nothing can be overspent.
    """
    if available == 0:
        return CategoryHealth.HEALTHY
    if spent > available:
        return CategoryHealth.OVERSPENT
    if spent > available * Decimal(str(warning_threshold)):
        return CategoryHealth.WARNING
    return CategoryHealth.HEALTHY


def categories_with_spent(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> list[CategoryWithSpent]:
    transactions = _active(transactions)
    result = []
    for category in categories:
        spent = category_spent(category.id, transactions)
        available = category.available
        result.append(CategoryWithSpent.model_validate({
            **category.model_dump(),
            "spent": spent,
            "remaining": available - spent,
            "health": category_health(spent, available, warning_threshold),
        }))
    return result


def total_overspent(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
) -> Decimal:
    transactions = _active(transactions)
    return sum(
        (
            max(ZERO, category_spent(c.id, transactions) - c.available)
            for c in categories
        ),
        ZERO,
    )


def amount_in_bank(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
) -> Decimal:
    """
    Cash that should still be in the bank.

    Unplanned spend is subtracted a second time: it was never part of
    the budgeted pool, so it drains cash on top of planned spend.
    """
    transactions = _active(transactions)
    return (
        (total_budgeted(categories) - total_spent(transactions))
        - total_unplanned_spent(transactions)
    )


def income_allocation_left(
    incomes: Iterable[Income],
    categories: Iterable[Category],
) -> Decimal:
    """Income not yet assigned to any category."""
    return total_income(incomes) - total_budgeted(categories)


def frequent_categories(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    limit: int = DEFAULT_TOP_LIMIT,
) -> list[CategoryCount]:
    by_id = {c.id: c for c in categories}
    counts = Counter(
        tx.category_id for tx in _active(transactions)
        if tx.category_id in by_id
    )
    return [
        CategoryCount(category_id=cid, name=by_id[cid].name, count=count)
        for cid, count in counts.most_common(limit)
    ]


def most_expensive_categories(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    limit: int = DEFAULT_TOP_LIMIT,
) -> list[CategorySpend]:
    spends = [
        c for c in categories_with_spent(categories, transactions)
        if c.spent > 0
    ]
    spends.sort(key=lambda c: c.spent, reverse=True)
    return [
        CategorySpend(name=c.name, spent=c.spent, color=c.color)
        for c in spends[:limit]
    ]


def borrowed_lent_summary(categories: Iterable[Category]) -> BorrowedLentSummary:
    borrowed = ZERO
    lent = ZERO
    for category in categories:
        if category.borrowed > 0:
            borrowed += category.borrowed
        elif category.borrowed < 0:
            lent += abs(category.borrowed)
    return BorrowedLentSummary(borrowed=borrowed, lent=lent)


def overspent_categories(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> list[CategoryWithSpent]:
    return [
        c for c in categories_with_spent(categories, transactions, warning_threshold)
        if c.health == CategoryHealth.OVERSPENT
    ]


def under_budget_categories(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> list[CategoryWithSpent]:
    return [
        c for c in categories_with_spent(categories, transactions, warning_threshold)
        if c.remaining > 0
    ]


def summarize(state: BudgetState) -> dict[str, Decimal]:
    """Headline totals for a month snapshot."""
    return {
        "total_income": total_income(state.incomes),
        "total_fixed_expenses": total_fixed_expenses(state.fixed_expenses),
        "total_budgeted": total_budgeted(state.categories),
        "total_spent": total_spent(state.transactions),
        "total_unplanned_spent": total_unplanned_spent(state.transactions),
        "total_overspent": total_overspent(state.categories, state.transactions),
        "amount_in_bank": amount_in_bank(state.categories, state.transactions),
        "income_allocation_left": income_allocation_left(state.incomes, state.categories),
    }
