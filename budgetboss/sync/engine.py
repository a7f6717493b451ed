"""
Sync Engine

Reconciles the local replica of one month with the remote store.

DESIGN DECISION: Push before pull.
A device that was offline pushes its edits first so a stale pull can't
clobber them; last-write-wins then favors whichever side changed later,
so the outcome doesn't depend on which device syncs first.

A full sync runs in five steps:
1. Ensure a budget exists for (owner, month), adopting or claiming one
2. Push the plan and the month's transactions
3. Pull and merge remote incomes, fixed expenses and categories
4. Pull remote transactions, then push transactions again
5. Record the sync time

FAILURE HANDLING:
- Step 1 failing aborts the sync with SyncUnavailableError
- A failing record push is logged and the record stays pending
- A failing pull is logged and the local data is kept as it is
Sync never deletes or corrupts local data.
"""

from typing import Generic, Optional, Type
from uuid import UUID

from budgetboss.audit import AuditLogger, create_correlation_id
from budgetboss.config import AppSettings, get_settings
from budgetboss.models.audit import AuditEventBuilder
from budgetboss.models.budget import (
    Budget,
    Category,
    FixedExpense,
    Income,
    PlanData,
    RecordT,
    Transaction,
    UserSettings,
    utc_now,
)
from budgetboss.models.sync import SyncReport
from budgetboss.month import month_date_range
from budgetboss.services.storage.interface import (
    DuplicateError,
    RemoteStoreInterface,
    RowFilter,
)
from budgetboss.services.storage.local_db import LocalRecordStore
from budgetboss.sync.merge import Resolver, last_write_wins, merge_records
from budgetboss.transitions import new_budget, reparent


class SyncError(Exception):
    """Base exception for sync errors."""
    pass


class SyncUnavailableError(SyncError):
    """The remote store could not be used; the app continues offline."""
    pass


class SyncTable(Generic[RecordT]):
    """A remote table bound to the record model its rows decode to."""

    def __init__(self, name: str, model: Type[RecordT]):
        self.name = name
        self.model = model

    def to_record(self, row: dict) -> RecordT:
        return self.model.model_validate(row)

    def __repr__(self) -> str:
        return f"SyncTable({self.name!r}, {self.model.__name__})"


BUDGETS = SyncTable("budgets", Budget)
INCOMES = SyncTable("incomes", Income)
FIXED_EXPENSES = SyncTable("fixed_expenses", FixedExpense)
CATEGORIES = SyncTable("categories", Category)
TRANSACTIONS = SyncTable("transactions", Transaction)
SETTINGS = SyncTable("settings", UserSettings)


class SyncEngine:
    """
    Push/pull/merge between a LocalRecordStore and a remote store.

    Callers serialize full syncs; two concurrent passes over the same
    month may interleave their remote calls.
    """

    def __init__(
        self,
        local_db: LocalRecordStore,
        remote: RemoteStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        resolve: Resolver = last_write_wins,
        settings: Optional[AppSettings] = None,
    ):
        self._local = local_db
        self._remote = remote
        self._audit = audit_logger or AuditLogger()
        self._resolve = resolve
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Step 1: ensure a budget
    # -------------------------------------------------------------------------

    async def _find_remote_budget(self, owner_id: str, month: str) -> Optional[Budget]:
        rows = await self._remote.select(BUDGETS.name, [
            RowFilter.eq("user_id", owner_id),
            RowFilter.eq("month", month),
            RowFilter.eq("deleted", False),
        ])
        if not rows:
            return None
        budgets = [BUDGETS.to_record(row) for row in rows]
        return min(budgets, key=lambda b: (b.created_at, b.id))

    async def ensure_budget(
        self,
        month: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Resolve the one budget for (owner, month) and make it the local one.

        A local budget already owned by `owner_id` is used as is. Otherwise
        a remote budget is adopted if one exists; if not, the local budget
        is claimed for the owner (or a fresh one created) and inserted.
        Safe to call repeatedly: it never creates a second budget.

        Raises:
            SyncUnavailableError: If the remote store could not be used
        """
        plan = await self._local.get_plan(month) or PlanData()
        local_budget = plan.budget
        if local_budget is not None and local_budget.user_id == owner_id:
            return local_budget

        try:
            budget = await self._find_remote_budget(owner_id, month)
            if budget is not None:
                await self._audit.log(
                    AuditEventBuilder.budget_adopted(budget.id, month, correlation_id)
                )
            else:
                if local_budget is None:
                    candidate = new_budget(month, owner_id, self._settings.default_budget_name)
                else:
                    candidate = local_budget.touched(user_id=owner_id)
                try:
                    row = await self._remote.insert(BUDGETS.name, candidate.to_row())
                    budget = BUDGETS.to_record(row)
                    await self._audit.log(
                        AuditEventBuilder.budget_created_remotely(budget.id, month, correlation_id)
                    )
                except DuplicateError:
                    # Another device created it first
                    budget = await self._find_remote_budget(owner_id, month)
                    if budget is None:
                        raise
                    await self._audit.log(
                        AuditEventBuilder.budget_adopted(budget.id, month, correlation_id)
                    )

            await self._adopt_budget(month, plan, budget)
        except Exception as e:
            raise SyncUnavailableError(f"Could not resolve budget for {month}: {e}") from e

        return budget

    async def _adopt_budget(self, month: str, plan: PlanData, budget: Budget) -> None:
        """Make `budget` the local one and re-parent the month's records to it."""
        incomes = reparent(plan.incomes, budget.id)
        fixed_expenses = reparent(plan.fixed_expenses, budget.id)
        categories = reparent(plan.categories, budget.id)
        await self._local.save_plan(month, PlanData(
            budget=budget,
            incomes=incomes,
            fixed_expenses=fixed_expenses,
            categories=categories,
        ))

        moved = [
            r.id for r in [*plan.incomes, *plan.fixed_expenses, *plan.categories]
            if r.budget_id != budget.id
        ]
        transactions = await self._local.get_transactions_for_month(month, include_deleted=True)
        for tx in transactions:
            if tx.budget_id == budget.id:
                continue
            await self._local.save_transaction(tx.touched(budget_id=budget.id))
            moved.append(tx.id)

        if moved:
            await self._local.mark_for_sync(*moved)

    # -------------------------------------------------------------------------
    # Step 2: push
    # -------------------------------------------------------------------------

    async def _push_record(
        self,
        table: SyncTable,
        record: RecordT,
        report: SyncReport,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Upsert one record if the remote copy is missing or strictly older.

        Failures are logged and counted; they never abort the pass.
        """
        try:
            row = await self._remote.get(table.name, record.id)
            if row is None or record.updated_at > table.to_record(row).updated_at:
                await self._remote.upsert(table.name, record.to_row())
                report.pushed += 1
            await self._local.mark_synced(record.id)
        except Exception as e:
            if record.id not in report.failed_ids:
                report.failed_ids.append(record.id)
            await self._audit.log_record_push_failed(
                table=table.name,
                record_id=record.id,
                error_message=str(e),
                correlation_id=correlation_id,
            )

    async def push_plan(
        self,
        month: str,
        report: SyncReport,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Push the month's budget, incomes, fixed expenses and categories."""
        plan = await self._local.get_plan(month)
        if plan is None:
            return
        if plan.budget is not None:
            await self._push_record(BUDGETS, plan.budget, report, correlation_id)
        for income in plan.incomes:
            await self._push_record(INCOMES, income, report, correlation_id)
        for expense in plan.fixed_expenses:
            await self._push_record(FIXED_EXPENSES, expense, report, correlation_id)
        for category in plan.categories:
            await self._push_record(CATEGORIES, category, report, correlation_id)

    async def push_transactions(
        self,
        month: str,
        report: SyncReport,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Push every transaction of the month, tombstones included."""
        transactions = await self._local.get_transactions_for_month(month, include_deleted=True)
        for tx in transactions:
            await self._push_record(TRANSACTIONS, tx, report, correlation_id)

    # -------------------------------------------------------------------------
    # Steps 3 and 4: pull
    # -------------------------------------------------------------------------

    async def _select_records(
        self,
        table: SyncTable,
        filters: list[RowFilter],
    ) -> list:
        rows = await self._remote.select(table.name, filters)
        return [table.to_record(row) for row in rows]

    async def pull_plan(
        self,
        month: str,
        budget: Budget,
        report: SyncReport,
        correlation_id: Optional[UUID] = None,
    ) -> PlanData:
        """
        Merge remote incomes, fixed expenses and categories into the local plan.

        On failure the local plan is kept unchanged and returned.
        """
        local_plan = await self._local.get_plan(month) or PlanData()
        try:
            by_budget = [
                RowFilter.eq("budget_id", budget.id),
                RowFilter.eq("deleted", False),
            ]
            remote_incomes = await self._select_records(INCOMES, by_budget)
            remote_expenses = await self._select_records(FIXED_EXPENSES, by_budget)
            remote_categories = await self._select_records(CATEGORIES, by_budget)

            incomes = merge_records(local_plan.incomes, remote_incomes, self._resolve)
            fixed_expenses = merge_records(
                local_plan.fixed_expenses, remote_expenses, self._resolve
            )
            categories = merge_records(local_plan.categories, remote_categories, self._resolve)

            kept = {
                id(r) for r in
                [*local_plan.incomes, *local_plan.fixed_expenses, *local_plan.categories]
            }
            report.pulled += sum(
                1 for record in [*incomes, *fixed_expenses, *categories]
                if id(record) not in kept
            )

            merged = PlanData(
                budget=budget,
                incomes=incomes,
                fixed_expenses=fixed_expenses,
                categories=categories,
            )
            await self._local.save_plan(month, merged)
            report.plan_merged = True
            return merged
        except Exception as e:
            await self._audit.log(AuditEventBuilder.pull_failed(month, str(e), correlation_id))
            if local_plan.budget is None:
                local_plan.budget = budget
                await self._local.save_plan(month, local_plan)
            return local_plan

    async def pull_transactions(
        self,
        month: str,
        budget: Budget,
        report: SyncReport,
    ) -> None:
        """
        Save remote transactions of the month that win against the local copy.

        Tombstones are pulled too, so deletions propagate.
        """
        start, end = month_date_range(month)
        remote_transactions = await self._select_records(TRANSACTIONS, [
            RowFilter.eq("budget_id", budget.id),
            RowFilter.gte("date", start),
            RowFilter.lt("date", end),
        ])
        for remote_tx in remote_transactions:
            local_tx = await self._local.get_transaction(remote_tx.id)
            if self._resolve(local_tx, remote_tx) is remote_tx:
                await self._local.save_transaction(remote_tx)
                report.pulled += 1

    # -------------------------------------------------------------------------
    # Full pass
    # -------------------------------------------------------------------------

    async def full_sync(self, month: str, owner_id: str) -> SyncReport:
        """
        Run one complete sync pass for `month`.

        Raises:
            SyncUnavailableError: If no budget could be resolved remotely
        """
        correlation_id = create_correlation_id()
        report = SyncReport(month=month, owner_id=owner_id)
        await self._audit.log(AuditEventBuilder.sync_started(month, owner_id, correlation_id))

        try:
            budget = await self.ensure_budget(month, owner_id, correlation_id)
        except SyncUnavailableError as e:
            await self._audit.log(
                AuditEventBuilder.sync_unavailable(month, str(e), correlation_id)
            )
            raise
        report.budget_id = budget.id

        await self.push_plan(month, report, correlation_id)
        await self.push_transactions(month, report, correlation_id)
        await self.pull_plan(month, budget, report, correlation_id)

        try:
            await self.pull_transactions(month, budget, report)
            await self.push_transactions(month, report, correlation_id)
            report.transactions_synced = True
        except Exception as e:
            await self._audit.log(
                AuditEventBuilder.transaction_sync_failed(month, str(e), correlation_id)
            )

        sync_state = await self._local.get_sync_state()
        sync_state.last_sync = utc_now()
        await self._local.set_sync_state(sync_state)

        report.completed_at = sync_state.last_sync
        await self._audit.log(AuditEventBuilder.sync_completed(
            month=month,
            pushed=report.pushed,
            pulled=report.pulled,
            failed=len(report.failed_ids),
            correlation_id=correlation_id,
        ))
        return report

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def sync_settings(self, owner_id: str) -> Optional[UserSettings]:
        """
        Reconcile the single settings record with the owner's remote row.

        The newer side wins; the winner ends up on both sides under the
        remote row's id. Returns None when neither side has settings.

        Raises:
            SyncUnavailableError: If the remote store could not be used
        """
        local = await self._local.get_settings()
        if local is not None and local.user_id != owner_id:
            local = local.model_copy(update={"user_id": owner_id})

        try:
            rows = await self._remote.select(SETTINGS.name, [
                RowFilter.eq("user_id", owner_id),
                RowFilter.eq("deleted", False),
            ])
            remote = SETTINGS.to_record(rows[0]) if rows else None

            if local is None and remote is None:
                return None

            if remote is not None and self._resolve(local, remote) is remote:
                await self._local.save_settings(remote)
                direction = "pull"
                result = remote
            else:
                if remote is not None:
                    local = local.model_copy(update={"id": remote.id})
                await self._remote.upsert(SETTINGS.name, local.to_row())
                await self._local.save_settings(local)
                direction = "push"
                result = local
        except Exception as e:
            raise SyncUnavailableError(f"Could not sync settings: {e}") from e

        await self._audit.log(AuditEventBuilder.settings_synced(owner_id, direction))
        return result
