"""
Budget Store

Owns the in-memory snapshot of the current month and every mutation of it.

DESIGN DECISION: Mutations are optimistic.
Each one:
1. Computes the next state with a pure transition (invalid input raises
   here, before anything changes)
2. Publishes it to subscribers
3. Persists it to the local replica, retrying briefly
4. Marks the touched ids as pending sync

A persistence failure after the retries is logged and the in-memory
state is kept - the user never loses what they just typed.

The store never talks to the remote store. Sync is a separate step.
"""

from decimal import Decimal
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from budgetboss import selectors, transitions
from budgetboss.audit import AuditLogger
from budgetboss.config import AppSettings, get_settings
from budgetboss.models.audit import AuditEventBuilder
from budgetboss.models.budget import (
    Budget,
    BudgetState,
    Category,
    CategoryCount,
    CategorySpend,
    CategoryWithSpent,
    CopyOptions,
    FixedExpense,
    FrequentPattern,
    Income,
    PlanData,
    QuickAddData,
    Transaction,
)
from budgetboss.month import get_current_month, parse_month
from budgetboss.services.storage.local_db import LocalRecordStore


Listener = Callable[[BudgetState], None]

INCOME_FIELDS = frozenset({"name", "amount"})
FIXED_EXPENSE_FIELDS = frozenset({"name", "amount"})
CATEGORY_FIELDS = frozenset({"name", "budgeted", "color", "notes"})
TRANSACTION_FIELDS = frozenset({
    "amount", "description", "category_id", "account", "is_unplanned", "date",
})


class BudgetStoreError(Exception):
    """Base exception for budget store errors."""
    pass


class NoBudgetLoadedError(BudgetStoreError):
    """A mutation was attempted before any month was loaded."""
    pass


class NoPreviousDataError(BudgetStoreError):
    """The month to copy from has no stored plan, or an empty one."""

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"No previous data found for {month}")


def _check_fields(updates: dict, allowed: frozenset) -> None:
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")


class BudgetStore:
    """
    Observable in-memory state for one month, backed by the local replica.
    """

    def __init__(
        self,
        local_db: LocalRecordStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        current_month: Optional[str] = None,
    ):
        self._db = local_db
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
        self._current_month = current_month or get_current_month()
        self._state = BudgetState()
        self._listeners: list[Listener] = []
        self._load_token = 0

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called synchronously after every state change.

        Returns a callable that unsubscribes it.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)

    def get_state(self) -> BudgetState:
        return self._state

    def get_current_month(self) -> str:
        return self._current_month

    async def set_current_month(self, month: str) -> None:
        parse_month(month)
        self._current_month = month
        await self.load_month(month)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_month(self, month: str) -> None:
        """
        Replace the snapshot with `month` read from the local replica.

        A month without a budget gets one synthesized for the local owner.
        Never raises: a failed load is logged and the previous snapshot kept.
        If another load starts meanwhile, only the newest one is applied.
        """
        parse_month(month)
        self._current_month = month
        self._load_token += 1
        token = self._load_token
        self._set_state(loading=True)

        try:
            plan = await self._db.get_plan(month) or PlanData()
            created = plan.budget is None
            if created:
                plan.budget = transitions.new_budget(
                    month,
                    self._settings.local_owner_id,
                    self._settings.default_budget_name,
                )
            transactions = await self._db.get_transactions_for_month(month)
        except Exception as e:
            await self._audit.log(AuditEventBuilder.month_load_failed(month, str(e)))
            if token == self._load_token:
                self._set_state(loading=False)
            return

        if token != self._load_token:
            return

        self._set_state(
            budget=plan.budget,
            incomes=plan.incomes,
            fixed_expenses=plan.fixed_expenses,
            categories=plan.categories,
            transactions=transactions,
            loading=False,
        )
        await self._audit.log(AuditEventBuilder.month_loaded(month, len(transactions)))

        if created:
            await self._audit.log(
                AuditEventBuilder.budget_created_locally(plan.budget.id, month)
            )
            await self._persist("create_budget", [plan.budget.id], self._plan_writer())

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _require_budget(self) -> Budget:
        if self._state.budget is None:
            raise NoBudgetLoadedError("Load a month before changing it")
        return self._state.budget

    def _plan_writer(self) -> Callable[[], Awaitable[None]]:
        # Snapshot now so a later mutation or month switch cannot change what is written
        month = self._current_month
        plan = PlanData(
            budget=self._state.budget,
            incomes=list(self._state.incomes),
            fixed_expenses=list(self._state.fixed_expenses),
            categories=list(self._state.categories),
        )
        return lambda: self._db.save_plan(month, plan)

    async def _persist(
        self,
        action: str,
        entity_ids: list[str],
        write: Callable[[], Awaitable[None]],
        mark_pending: bool = True,
    ) -> bool:
        """
        Write to the local replica with retries, then mark ids pending.

        Returns False (after logging) when the write kept failing.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.persist_retry_attempts),
                wait=wait_exponential(
                    multiplier=self._settings.persist_retry_wait_seconds,
                    max=1,
                ),
                reraise=True,
            ):
                with attempt:
                    await write()
                    if mark_pending and entity_ids:
                        await self._db.mark_for_sync(*entity_ids)
        except Exception as e:
            await self._audit.log_persist_failed(action, entity_ids, str(e))
            return False
        return True

    async def _commit_plan(self, action: str, entity_type: str, entity_ids: list[str]) -> None:
        await self._audit.log_mutation(action, entity_type, entity_ids)
        await self._persist(action, entity_ids, self._plan_writer())

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    async def add_income(self, name: str, amount: Decimal) -> Income:
        budget = self._require_budget()
        income = Income(budget_id=budget.id, name=name, amount=amount)
        self._set_state(incomes=transitions.append_record(self._state.incomes, income))
        await self._commit_plan("add_income", "income", [income.id])
        return income

    async def update_income(self, income_id: str, **updates) -> Income:
        """
        Change an income's name and/or amount.

        Raises:
            UnknownRecordError: If the income is not in the current month
        """
        self._require_budget()
        _check_fields(updates, INCOME_FIELDS)
        incomes, income = transitions.replace_record(self._state.incomes, income_id, updates)
        self._set_state(incomes=incomes)
        await self._commit_plan("update_income", "income", [income_id])
        return income

    async def delete_income(self, income_id: str) -> None:
        self._require_budget()
        self._set_state(incomes=transitions.remove_record(self._state.incomes, income_id))
        await self._commit_plan("delete_income", "income", [income_id])

    # -------------------------------------------------------------------------
    # Fixed expenses
    # -------------------------------------------------------------------------

    async def add_fixed_expense(self, name: str, amount: Decimal) -> FixedExpense:
        budget = self._require_budget()
        expense = FixedExpense(budget_id=budget.id, name=name, amount=amount)
        self._set_state(
            fixed_expenses=transitions.append_record(self._state.fixed_expenses, expense)
        )
        await self._commit_plan("add_fixed_expense", "fixed_expense", [expense.id])
        return expense

    async def update_fixed_expense(self, expense_id: str, **updates) -> FixedExpense:
        self._require_budget()
        _check_fields(updates, FIXED_EXPENSE_FIELDS)
        expenses, expense = transitions.replace_record(
            self._state.fixed_expenses, expense_id, updates
        )
        self._set_state(fixed_expenses=expenses)
        await self._commit_plan("update_fixed_expense", "fixed_expense", [expense_id])
        return expense

    async def delete_fixed_expense(self, expense_id: str) -> None:
        self._require_budget()
        self._set_state(
            fixed_expenses=transitions.remove_record(self._state.fixed_expenses, expense_id)
        )
        await self._commit_plan("delete_fixed_expense", "fixed_expense", [expense_id])

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(
        self,
        name: str,
        budgeted: Decimal = Decimal("0"),
        color: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Category:
        budget = self._require_budget()
        category = Category(
            budget_id=budget.id,
            name=name,
            budgeted=budgeted,
            color=color or self._settings.default_category_color,
            notes=notes,
        )
        self._set_state(
            categories=transitions.append_record(self._state.categories, category)
        )
        await self._commit_plan("add_category", "category", [category.id])
        return category

    async def update_category(self, category_id: str, **updates) -> Category:
        self._require_budget()
        _check_fields(updates, CATEGORY_FIELDS)
        categories, category = transitions.replace_record(
            self._state.categories, category_id, updates
        )
        self._set_state(categories=categories)
        await self._commit_plan("update_category", "category", [category_id])
        return category

    async def delete_category(self, category_id: str) -> None:
        """
        Remove a category.

        Transactions that referenced it keep their category_id and simply
        stop counting toward any category.
        """
        self._require_budget()
        self._set_state(
            categories=transitions.remove_record(self._state.categories, category_id)
        )
        await self._commit_plan("delete_category", "category", [category_id])

    async def borrow_between_categories(
        self,
        from_category_id: str,
        to_category_id: str,
        amount: Decimal,
    ) -> None:
        """
        Move budgeted capacity between two categories in one step.

        Business rules (remaining balance, distinct categories) are the
        caller's to check; see BudgetValidator.validate_borrow.
        """
        self._require_budget()
        categories = transitions.borrow(
            self._state.categories, from_category_id, to_category_id, amount
        )
        self._set_state(categories=categories)
        await self._commit_plan(
            "borrow_between_categories",
            "category",
            [from_category_id, to_category_id],
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, data: QuickAddData) -> Transaction:
        """
        Record a spend in the current budget and learn its pattern.
        """
        budget = self._require_budget()
        fields = data.model_dump(exclude_none=True)
        fields.setdefault("account", self._settings.default_account)
        transaction = Transaction(budget_id=budget.id, **fields)

        self._set_state(transactions=transitions.upsert_transaction(
            self._state.transactions, transaction, self._current_month
        ))
        await self._audit.log_mutation("add_transaction", "transaction", [transaction.id])
        await self._persist(
            "add_transaction",
            [transaction.id],
            lambda: self._db.save_transaction(transaction),
        )

        if not transaction.is_unplanned and transaction.category_id:
            await self._learn_pattern(transaction)
        return transaction

    async def _learn_pattern(self, transaction: Transaction) -> None:
        async def write():
            patterns = await self._db.get_patterns()
            await self._db.save_patterns(transitions.learn_pattern(patterns, transaction))

        await self._persist("learn_pattern", [], write, mark_pending=False)

    async def update_transaction(self, transaction_id: str, **updates) -> Transaction:
        """
        Edit a transaction of the current month.

        Marking it unplanned clears its category. Moving its date to
        another month removes it from the current snapshot.
        """
        self._require_budget()
        _check_fields(updates, TRANSACTION_FIELDS)
        current = next(
            (tx for tx in self._state.transactions if tx.id == transaction_id),
            None,
        )
        if current is None:
            raise transitions.UnknownRecordError(transaction_id)

        updated = current.touched(**updates)
        self._set_state(transactions=transitions.upsert_transaction(
            self._state.transactions, updated, self._current_month
        ))
        await self._audit.log_mutation("update_transaction", "transaction", [transaction_id])
        await self._persist(
            "update_transaction",
            [transaction_id],
            lambda: self._db.save_transaction(updated),
        )
        return updated

    async def delete_transaction(self, transaction_id: str) -> None:
        """Drop a transaction from view and tombstone it locally."""
        self._require_budget()
        if not any(tx.id == transaction_id for tx in self._state.transactions):
            raise transitions.UnknownRecordError(transaction_id)
        self._set_state(transactions=[
            tx for tx in self._state.transactions if tx.id != transaction_id
        ])
        await self._audit.log_mutation("delete_transaction", "transaction", [transaction_id])

        async def write():
            await self._db.delete_transaction(transaction_id)

        await self._persist("delete_transaction", [transaction_id], write)

    # -------------------------------------------------------------------------
    # Month planning
    # -------------------------------------------------------------------------

    async def copy_from_previous_month(
        self,
        source_month: str,
        options: Optional[CopyOptions] = None,
    ) -> PlanData:
        """
        Append copies of another month's incomes, fixed expenses and/or
        categories.

        Copies get new ids, belong to the current budget and start with
        nothing borrowed. Existing records are left alone.

        Returns:
            PlanData holding only the copied records

        Raises:
            NoPreviousDataError: If `source_month` has no stored plan, or
                its plan has nothing left to copy
        """
        budget = self._require_budget()
        options = options or CopyOptions()
        source = await self._db.get_plan(source_month)
        if source is None or not any(
            not record.deleted
            for record in [*source.incomes, *source.fixed_expenses, *source.categories]
        ):
            raise NoPreviousDataError(source_month)

        copied = PlanData(
            budget=budget,
            incomes=(
                transitions.copy_incomes(source.incomes, budget.id)
                if options.incomes else []
            ),
            fixed_expenses=(
                transitions.copy_fixed_expenses(source.fixed_expenses, budget.id)
                if options.fixed_expenses else []
            ),
            categories=(
                transitions.copy_categories(source.categories, budget.id)
                if options.categories else []
            ),
        )

        self._set_state(
            incomes=[*self._state.incomes, *copied.incomes],
            fixed_expenses=[*self._state.fixed_expenses, *copied.fixed_expenses],
            categories=[*self._state.categories, *copied.categories],
        )
        new_ids = [
            r.id for r in [*copied.incomes, *copied.fixed_expenses, *copied.categories]
        ]
        await self._audit.log(AuditEventBuilder.previous_month_copied(
            source_month=source_month,
            target_month=self._current_month,
            income_count=len(copied.incomes),
            category_count=len(copied.categories),
            fixed_expense_count=len(copied.fixed_expenses),
        ))
        await self._persist("copy_from_previous_month", new_ids, self._plan_writer())
        return copied

    async def get_frequent_patterns(self, limit: Optional[int] = None) -> list[FrequentPattern]:
        """Quick-repeat suggestions for categories of the current month."""
        patterns = await self._db.get_patterns()
        return transitions.frequent_patterns(
            patterns,
            self._state.categories,
            min_count=self._settings.frequent_pattern_min_count,
            limit=limit or self._settings.frequent_pattern_limit,
        )

    # -------------------------------------------------------------------------
    # Derived views of the current snapshot
    # -------------------------------------------------------------------------

    def get_categories_with_spent(self) -> list[CategoryWithSpent]:
        return selectors.categories_with_spent(
            self._state.categories,
            self._state.transactions,
            self._settings.warning_threshold,
        )

    def get_total_income(self) -> Decimal:
        return selectors.total_income(self._state.incomes)

    def get_total_fixed_expenses(self) -> Decimal:
        return selectors.total_fixed_expenses(self._state.fixed_expenses)

    def get_total_budgeted(self) -> Decimal:
        return selectors.total_budgeted(self._state.categories)

    def get_total_spent(self) -> Decimal:
        return selectors.total_spent(self._state.transactions)

    def get_amount_in_bank(self) -> Decimal:
        return selectors.amount_in_bank(self._state.categories, self._state.transactions)

    def get_income_allocation_left(self) -> Decimal:
        return selectors.income_allocation_left(self._state.incomes, self._state.categories)

    def get_frequent_categories(self) -> list[CategoryCount]:
        return selectors.frequent_categories(
            self._state.categories,
            self._state.transactions,
            self._settings.top_categories_limit,
        )

    def get_most_expensive_categories(self) -> list[CategorySpend]:
        return selectors.most_expensive_categories(
            self._state.categories,
            self._state.transactions,
            self._settings.top_categories_limit,
        )

    def get_summary(self) -> dict[str, Decimal]:
        return selectors.summarize(self._state)
