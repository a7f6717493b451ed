"""
State Transitions

Pure functions producing the next version of a month's records.
The budget store applies these, publishes the result, and only then
persists it - so every transition here is testable without storage.

Nothing in this module mutates its inputs.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from budgetboss.models.budget import (
    Budget,
    Category,
    FixedExpense,
    FrequentPattern,
    Income,
    RecordT,
    Transaction,
    TransactionPattern,
    new_id,
    utc_now,
)


class UnknownRecordError(LookupError):
    """A transition referenced an id that is not in the snapshot."""
    pass


def new_budget(month: str, owner_id: str, name: str) -> Budget:
    return Budget(user_id=owner_id, month=month, name=name)


def append_record(records: list[RecordT], record: RecordT) -> list[RecordT]:
    return [*records, record]


def replace_record(
    records: list[RecordT],
    record_id: str,
    updates: dict,
) -> tuple[list[RecordT], RecordT]:
    """
    Apply `updates` to one record with a fresh updated_at.

    Raises:
        UnknownRecordError: If no record has this id
        pydantic.ValidationError: If the updated record is invalid
    """
    for idx, record in enumerate(records):
        if record.id == record_id:
            updated = record.touched(**updates)
            return [*records[:idx], updated, *records[idx + 1:]], updated
    raise UnknownRecordError(record_id)


def remove_record(records: list[RecordT], record_id: str) -> list[RecordT]:
    """Hard-remove a record (incomes and categories are not tombstoned)."""
    if not any(r.id == record_id for r in records):
        raise UnknownRecordError(record_id)
    return [r for r in records if r.id != record_id]


def borrow(
    categories: list[Category],
    from_id: str,
    to_id: str,
    amount: Decimal,
    now: Optional[datetime] = None,
) -> list[Category]:
    """
    Move `amount` of capacity from one category to another.

    Both sides change in the same returned list, so the sum of
    `borrowed` is unchanged. Borrowing from a category into itself
    changes nothing.
    """
    ids = {c.id for c in categories}
    for category_id in (from_id, to_id):
        if category_id not in ids:
            raise UnknownRecordError(category_id)
    if from_id == to_id:
        return list(categories)

    now = now or utc_now()
    result = []
    for category in categories:
        if category.id == from_id:
            category = category.model_copy(update={
                "borrowed": category.borrowed - amount,
                "updated_at": now,
            })
        elif category.id == to_id:
            category = category.model_copy(update={
                "borrowed": category.borrowed + amount,
                "updated_at": now,
            })
        result.append(category)
    return result


def upsert_transaction(
    transactions: list[Transaction],
    transaction: Transaction,
    month: str,
) -> list[Transaction]:
    """
    Place a transaction into the month's list, newest date first.

    A transaction dated outside `month` (or deleted) is dropped from it.
    """
    others = [tx for tx in transactions if tx.id != transaction.id]
    if transaction.deleted or transaction.month != month:
        return others
    return sorted([transaction, *others], key=lambda tx: tx.date, reverse=True)


def copy_incomes(incomes: list[Income], budget_id: str) -> list[Income]:
    now = utc_now()
    return [
        income.model_copy(update={
            "id": new_id(),
            "budget_id": budget_id,
            "created_at": now,
            "updated_at": now,
        })
        for income in incomes
        if not income.deleted
    ]


def copy_fixed_expenses(expenses: list[FixedExpense], budget_id: str) -> list[FixedExpense]:
    now = utc_now()
    return [
        expense.model_copy(update={
            "id": new_id(),
            "budget_id": budget_id,
            "created_at": now,
            "updated_at": now,
        })
        for expense in expenses
        if not expense.deleted
    ]


def copy_categories(categories: list[Category], budget_id: str) -> list[Category]:
    """Deep-copy categories into another budget with borrowing reset."""
    now = utc_now()
    return [
        category.model_copy(update={
            "id": new_id(),
            "budget_id": budget_id,
            "borrowed": Decimal("0"),
            "created_at": now,
            "updated_at": now,
        }, deep=True)
        for category in categories
        if not category.deleted
    ]


def reparent(records: list[RecordT], budget_id: str) -> list[RecordT]:
    """Point records at another budget id, touching only those that change."""
    return [
        r if getattr(r, "budget_id", budget_id) == budget_id else r.touched(budget_id=budget_id)
        for r in records
    ]


def learn_pattern(
    patterns: list[TransactionPattern],
    transaction: Transaction,
) -> list[TransactionPattern]:
    """
    Record one more use of the transaction's (description, category) pair.
    """
    now = utc_now()
    result = []
    found = False
    for pattern in patterns:
        if (
            pattern.description == transaction.description
            and pattern.category_id == transaction.category_id
        ):
            pattern = pattern.model_copy(update={
                "count": pattern.count + 1,
                "last_amount": transaction.amount,
                "last_used": now,
            })
            found = True
        result.append(pattern)

    if not found:
        result.append(TransactionPattern(
            description=transaction.description,
            category_id=transaction.category_id,
            count=1,
            last_amount=transaction.amount,
            last_used=now,
        ))
    return result


def frequent_patterns(
    patterns: list[TransactionPattern],
    categories: list[Category],
    min_count: int = 3,
    limit: int = 3,
) -> list[FrequentPattern]:
    """
    Most used patterns whose category still exists.

    Sorted by count, then by most recent use.
    """
    names = {c.id: c.name for c in categories}
    eligible = [
        p for p in patterns
        if p.count >= min_count and p.category_id in names
    ]
    eligible.sort(key=lambda p: (p.count, p.last_used), reverse=True)
    return [
        FrequentPattern(
            description=p.description,
            category_id=p.category_id,
            category_name=names[p.category_id],
            amount=p.last_amount,
            count=p.count,
            last_used=p.last_used,
        )
        for p in eligible[:limit]
    ]
