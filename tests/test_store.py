"""Tests for the budget store."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from budgetboss.models.audit import AuditEventType
from budgetboss.models.budget import (
    Budget,
    Category,
    CopyOptions,
    FixedExpense,
    Income,
    PlanData,
    QuickAddData,
)
from budgetboss.store import BudgetStore, NoBudgetLoadedError, NoPreviousDataError
from budgetboss.transitions import UnknownRecordError

from tests.conftest import MONTH, at


async def _loaded(store):
    await store.load_month(MONTH)
    return store


class TestLoading:
    """Tests for month loading."""

    @pytest.mark.asyncio
    async def test_load_synthesizes_budget(self, store, local_db):
        """An unknown month gets a local budget that is saved and pending."""
        await store.load_month(MONTH)

        state = store.get_state()
        assert state.budget is not None
        assert state.budget.month == MONTH
        assert state.budget.user_id == "local-user"
        assert state.loading is False

        plan = await local_db.get_plan(MONTH)
        assert plan.budget.id == state.budget.id
        assert state.budget.id in await local_db.get_pending_changes()

    @pytest.mark.asyncio
    async def test_reload_keeps_budget(self, store):
        await store.load_month(MONTH)
        first = store.get_state().budget.id
        await store.load_month(MONTH)
        assert store.get_state().budget.id == first

    @pytest.mark.asyncio
    async def test_load_reads_existing_plan(self, store, local_db):
        budget = Budget(month=MONTH, name="August")
        income = Income(budget_id=budget.id, name="Salary", amount=Decimal("3000"))
        await local_db.save_plan(MONTH, PlanData(budget=budget, incomes=[income]))

        await store.load_month(MONTH)
        state = store.get_state()
        assert state.budget == budget
        assert state.incomes == [income]

    @pytest.mark.asyncio
    async def test_load_with_failing_reads(self, store, kv_storage):
        """A broken replica still yields a usable, empty month."""
        kv_storage.fail_reads = True
        await store.load_month(MONTH)

        state = store.get_state()
        assert state.budget is not None
        assert state.incomes == []
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_set_current_month(self, store):
        await store.set_current_month("2025-09")
        assert store.get_current_month() == "2025-09"
        assert store.get_state().budget.month == "2025-09"

    @pytest.mark.asyncio
    async def test_mutation_before_load(self, store):
        with pytest.raises(NoBudgetLoadedError):
            await store.add_income("Salary", Decimal("100"))


class TestSubscribers:
    """Tests for state observation."""

    @pytest.mark.asyncio
    async def test_subscribers_see_each_change(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state: seen.append(state))

        await store.load_month(MONTH)
        assert seen[0].loading is True
        assert seen[-1].loading is False

        count = len(seen)
        await store.add_income("Salary", Decimal("100"))
        assert len(seen) == count + 1
        assert seen[-1].incomes[0].name == "Salary"

        unsubscribe()
        await store.add_income("Bonus", Decimal("50"))
        assert len(seen) == count + 1

    @pytest.mark.asyncio
    async def test_state_published_before_persistence(self, store, kv_storage):
        """Listeners run before the write, so they see the new state first."""
        await _loaded(store)
        writes_at_notify = []
        store.subscribe(lambda state: writes_at_notify.append(kv_storage.write_attempts))

        before = kv_storage.write_attempts
        await store.add_income("Salary", Decimal("100"))

        assert writes_at_notify == [before]
        assert kv_storage.write_attempts > before


class TestPlanMutations:
    """Tests for incomes and categories."""

    @pytest.mark.asyncio
    async def test_add_income_is_persisted_and_pending(self, store, local_db):
        await _loaded(store)
        income = await store.add_income("Salary", Decimal("3000"))

        assert income.budget_id == store.get_state().budget.id
        plan = await local_db.get_plan(MONTH)
        assert plan.incomes == [income]
        assert income.id in await local_db.get_pending_changes()

    @pytest.mark.asyncio
    async def test_update_income(self, store):
        await _loaded(store)
        income = await store.add_income("Salary", Decimal("3000"))

        updated = await store.update_income(income.id, amount=Decimal("3200"))
        assert updated.amount == Decimal("3200")
        assert updated.updated_at >= income.updated_at
        assert store.get_state().incomes == [updated]

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, store):
        await _loaded(store)
        income = await store.add_income("Salary", Decimal("3000"))

        with pytest.raises(ValidationError):
            await store.update_income(income.id, amount=Decimal("-1"))
        with pytest.raises(ValueError):
            await store.update_income(income.id, budget_id="elsewhere")
        with pytest.raises(UnknownRecordError):
            await store.update_income("missing", amount=Decimal("1"))

        assert store.get_state().incomes == [income]

    @pytest.mark.asyncio
    async def test_delete_income(self, store, local_db):
        await _loaded(store)
        income = await store.add_income("Salary", Decimal("3000"))
        await store.delete_income(income.id)

        assert store.get_state().incomes == []
        assert (await local_db.get_plan(MONTH)).incomes == []

    @pytest.mark.asyncio
    async def test_add_category_uses_default_color(self, store, app_settings):
        await _loaded(store)
        category = await store.add_category("Food", Decimal("400"))
        assert category.color == app_settings.default_category_color
        assert category.borrowed == Decimal("0")

    @pytest.mark.asyncio
    async def test_update_and_delete_category(self, store):
        await _loaded(store)
        category = await store.add_category("Food", Decimal("400"))

        updated = await store.update_category(category.id, notes="Weekly shop", budgeted=Decimal("450"))
        assert updated.notes == "Weekly shop"
        assert store.get_total_budgeted() == Decimal("450")

        await store.delete_category(category.id)
        assert store.get_state().categories == []

    @pytest.mark.asyncio
    async def test_borrow_is_zero_sum(self, store, local_db):
        """Both sides change in one step and borrowed still sums to zero."""
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))
        fun = await store.add_category("Fun", Decimal("100"))

        await store.borrow_between_categories(food.id, fun.id, Decimal("60"))

        by_name = {c.name: c for c in store.get_state().categories}
        assert by_name["Food"].borrowed == Decimal("-60")
        assert by_name["Fun"].borrowed == Decimal("60")
        assert by_name["Food"].updated_at == by_name["Fun"].updated_at
        assert sum(c.borrowed for c in store.get_state().categories) == Decimal("0")

        plan = await local_db.get_plan(MONTH)
        assert sum(c.borrowed for c in plan.categories) == Decimal("0")

    @pytest.mark.asyncio
    async def test_borrow_unknown_category(self, store):
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))
        with pytest.raises(UnknownRecordError):
            await store.borrow_between_categories(food.id, "missing", Decimal("10"))
        assert store.get_state().categories[0].borrowed == Decimal("0")


class TestFixedExpenses:
    """Fixed expenses live in the plan next to incomes."""

    @pytest.mark.asyncio
    async def test_add_update_delete(self, store, local_db):
        await _loaded(store)
        rent = await store.add_fixed_expense("Rent", Decimal("1200"))
        phone = await store.add_fixed_expense("Phone", Decimal("40"))

        assert rent.budget_id == store.get_state().budget.id
        assert (await local_db.get_plan(MONTH)).fixed_expenses == [rent, phone]
        assert rent.id in await local_db.get_pending_changes()

        updated = await store.update_fixed_expense(rent.id, amount=Decimal("1250"))
        assert store.get_state().fixed_expenses == [updated, phone]
        assert store.get_total_fixed_expenses() == Decimal("1290")

        await store.delete_fixed_expense(phone.id)
        assert (await local_db.get_plan(MONTH)).fixed_expenses == [updated]

    @pytest.mark.asyncio
    async def test_allocation_left_ignores_fixed_expenses(self, store):
        """Income allocation only subtracts what categories hold."""
        await _loaded(store)
        await store.add_income("Salary", Decimal("3000"))
        await store.add_category("Food", Decimal("400"))
        await store.add_fixed_expense("Rent", Decimal("1200"))

        assert store.get_income_allocation_left() == Decimal("2600")

    @pytest.mark.asyncio
    async def test_rejected_changes(self, store):
        await _loaded(store)
        rent = await store.add_fixed_expense("Rent", Decimal("1200"))

        with pytest.raises(ValueError):
            await store.update_fixed_expense(rent.id, budget_id="elsewhere")
        with pytest.raises(UnknownRecordError):
            await store.delete_fixed_expense("missing")
        assert store.get_state().fixed_expenses == [rent]


class TestTransactions:
    """Tests for transaction mutations and pattern learning."""

    @pytest.mark.asyncio
    async def test_round_trip_through_reload(self, store, local_db, audit_logger, app_settings):
        """What was added comes back the same from a fresh store."""
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))
        planned = await store.add_transaction(QuickAddData(
            amount=Decimal("25.40"),
            description="Groceries",
            category_id=food.id,
            date=at(5),
        ))
        unplanned = await store.add_transaction(QuickAddData(
            amount=Decimal("90"),
            description="Tow truck",
            category_id=food.id,
            is_unplanned=True,
            date=at(7),
        ))

        reopened = BudgetStore(local_db, audit_logger, app_settings, current_month=MONTH)
        await reopened.load_month(MONTH)

        by_id = {tx.id: tx for tx in reopened.get_state().transactions}
        assert set(by_id) == {planned.id, unplanned.id}
        assert by_id[planned.id].amount == Decimal("25.40")
        assert by_id[planned.id].description == "Groceries"
        assert by_id[planned.id].category_id == food.id
        assert by_id[unplanned.id].amount == Decimal("90")
        assert by_id[unplanned.id].description == "Tow truck"
        assert by_id[unplanned.id].category_id is None
        assert by_id[unplanned.id].is_unplanned

    @pytest.mark.asyncio
    async def test_add_transaction(self, store, local_db):
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))

        tx = await store.add_transaction(QuickAddData(
            amount=Decimal("25"),
            description="Groceries",
            category_id=food.id,
            date=at(5),
        ))

        assert store.get_state().transactions == [tx]
        assert await local_db.get_transaction(tx.id) == tx
        assert tx.id in await local_db.get_pending_changes()
        assert store.get_categories_with_spent()[0].spent == Decimal("25")

    @pytest.mark.asyncio
    async def test_unplanned_drops_category(self, store):
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))

        tx = await store.add_transaction(QuickAddData(
            amount=Decimal("90"),
            description="Tow truck",
            category_id=food.id,
            is_unplanned=True,
            date=at(5),
        ))
        assert tx.category_id is None
        assert tx.is_unplanned

    @pytest.mark.asyncio
    async def test_patterns_learned(self, store):
        """Three uses of the same pair make a quick-repeat suggestion."""
        await _loaded(store)
        coffee = await store.add_category("Coffee", Decimal("100"))

        for amount in ("10", "20", "30"):
            await store.add_transaction(QuickAddData(
                amount=Decimal(amount),
                description="Flat white",
                category_id=coffee.id,
                date=at(6),
            ))

        [pattern] = await store.get_frequent_patterns()
        assert pattern.count == 3
        assert pattern.amount == Decimal("30")
        assert pattern.category_name == "Coffee"

    @pytest.mark.asyncio
    async def test_patterns_need_min_count_and_live_category(self, store):
        await _loaded(store)
        coffee = await store.add_category("Coffee", Decimal("100"))
        for _ in range(2):
            await store.add_transaction(QuickAddData(
                amount=Decimal("4"),
                description="Espresso",
                category_id=coffee.id,
                date=at(6),
            ))
        assert await store.get_frequent_patterns() == []

        await store.add_transaction(QuickAddData(
            amount=Decimal("4"),
            description="Espresso",
            category_id=coffee.id,
            date=at(6),
        ))
        await store.delete_category(coffee.id)
        assert await store.get_frequent_patterns() == []

    @pytest.mark.asyncio
    async def test_update_transaction_to_unplanned(self, store):
        await _loaded(store)
        food = await store.add_category("Food", Decimal("400"))
        tx = await store.add_transaction(QuickAddData(
            amount=Decimal("25"),
            description="Groceries",
            category_id=food.id,
            date=at(5),
        ))

        updated = await store.update_transaction(tx.id, is_unplanned=True)
        assert updated.category_id is None
        assert store.get_state().transactions == [updated]

    @pytest.mark.asyncio
    async def test_update_transaction_out_of_month(self, store, local_db):
        """Moving the date elsewhere removes it from this month's view."""
        await _loaded(store)
        tx = await store.add_transaction(QuickAddData(
            amount=Decimal("25"),
            description="Groceries",
            date=at(5),
            is_unplanned=True,
        ))

        await store.update_transaction(tx.id, date=at(2, month=9))

        assert store.get_state().transactions == []
        assert await local_db.get_transaction_index("2025-09") == [tx.id]

    @pytest.mark.asyncio
    async def test_delete_transaction(self, store, local_db):
        await _loaded(store)
        tx = await store.add_transaction(QuickAddData(
            amount=Decimal("25"),
            description="Groceries",
            date=at(5),
            is_unplanned=True,
        ))

        await store.delete_transaction(tx.id)

        assert store.get_state().transactions == []
        stored = await local_db.get_transaction(tx.id)
        assert stored.deleted
        assert tx.id in await local_db.get_pending_changes()

    @pytest.mark.asyncio
    async def test_delete_unknown_transaction(self, store, local_db):
        await _loaded(store)
        with pytest.raises(UnknownRecordError):
            await store.delete_transaction("missing")
        assert await local_db.get_transaction("missing") is None
        assert "missing" not in await local_db.get_pending_changes()


class TestCopyFromPreviousMonth:
    """Tests for copying a previous month's plan."""

    async def _seed_july(self, local_db):
        july = Budget(month="2025-07")
        incomes = [
            Income(budget_id=july.id, name="Salary", amount=Decimal("3000")),
            Income(budget_id=july.id, name="Rent out", amount=Decimal("500")),
        ]
        categories = [
            Category(budget_id=july.id, name=name, budgeted=Decimal("100"), borrowed=Decimal(b))
            for name, b in (("Food", "20"), ("Fun", "-20"), ("Rent", "0"))
        ]
        await local_db.save_plan("2025-07", PlanData(
            budget=july,
            incomes=incomes,
            fixed_expenses=[
                FixedExpense(budget_id=july.id, name="Rent", amount=Decimal("1200")),
            ],
            categories=categories,
        ))
        return incomes, categories

    @pytest.mark.asyncio
    async def test_copy_incomes_only(self, store, local_db):
        july_incomes, _ = await self._seed_july(local_db)
        await _loaded(store)

        copied = await store.copy_from_previous_month(
            "2025-07", CopyOptions(incomes=True, fixed_expenses=False, categories=False)
        )
        incomes = copied.incomes

        assert len(incomes) == 2
        assert copied.categories == []
        assert copied.fixed_expenses == []
        assert {i.id for i in incomes}.isdisjoint({i.id for i in july_incomes})
        budget_id = store.get_state().budget.id
        assert all(i.budget_id == budget_id for i in incomes)
        assert store.get_state().categories == []

        pending = await local_db.get_pending_changes()
        assert all(i.id in pending for i in incomes)
        assert len((await local_db.get_plan(MONTH)).incomes) == 2

    @pytest.mark.asyncio
    async def test_copied_categories_reset_borrowing(self, store, local_db):
        await self._seed_july(local_db)
        await _loaded(store)
        await store.add_category("Existing", Decimal("10"))

        categories = (await store.copy_from_previous_month("2025-07")).categories

        assert len(categories) == 3
        assert all(c.borrowed == Decimal("0") for c in categories)
        assert [c.name for c in store.get_state().categories] == ["Existing", "Food", "Fun", "Rent"]

    @pytest.mark.asyncio
    async def test_no_previous_data(self, store):
        await _loaded(store)
        with pytest.raises(NoPreviousDataError):
            await store.copy_from_previous_month("2025-07")

    @pytest.mark.asyncio
    async def test_opened_but_empty_month(self, store, local_db):
        """A month that was only viewed has a plan but nothing to copy."""
        await store.load_month("2025-07")
        await store.load_month(MONTH)
        assert await local_db.get_plan("2025-07") is not None

        with pytest.raises(NoPreviousDataError):
            await store.copy_from_previous_month("2025-07")
        assert store.get_state().incomes == []

    @pytest.mark.asyncio
    async def test_only_deleted_records_count_as_empty(self, store, local_db):
        july = Budget(month="2025-07")
        await local_db.save_plan("2025-07", PlanData(
            budget=july,
            incomes=[Income(budget_id=july.id, name="Old", amount=Decimal("1"), deleted=True)],
        ))
        await _loaded(store)

        with pytest.raises(NoPreviousDataError):
            await store.copy_from_previous_month("2025-07")

    @pytest.mark.asyncio
    async def test_copy_fixed_expenses(self, store, local_db):
        await self._seed_july(local_db)
        await _loaded(store)

        copied = await store.copy_from_previous_month(
            "2025-07", CopyOptions(incomes=False, categories=False)
        )

        [rent] = copied.fixed_expenses
        assert rent.name == "Rent"
        assert rent.budget_id == store.get_state().budget.id
        assert store.get_state().fixed_expenses == [rent]
        assert (await local_db.get_plan(MONTH)).fixed_expenses == [rent]
        assert rent.id in await local_db.get_pending_changes()


class TestPersistenceFailures:
    """A failing replica never loses what the user just did."""

    @pytest.mark.asyncio
    async def test_failed_write_keeps_state(self, store, kv_storage, audit_logger, app_settings):
        await _loaded(store)
        kv_storage.fail_writes = True
        kv_storage.write_attempts = 0

        income = await store.add_income("Salary", Decimal("3000"))

        assert store.get_state().incomes == [income]
        assert kv_storage.write_attempts == app_settings.persist_retry_attempts
        failures = [
            e for e in audit_logger.recent_events()
            if e.event_type == AuditEventType.PERSIST_FAILED
        ]
        assert failures[0].entity_id == income.id

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, store, kv_storage, local_db):
        await _loaded(store)
        original_set = kv_storage.set
        calls = []

        async def flaky_set(key, value):
            calls.append(key)
            if len(calls) == 1:
                raise OSError("busy")
            await original_set(key, value)

        kv_storage.set = flaky_set
        income = await store.add_income("Salary", Decimal("3000"))

        assert (await local_db.get_plan(MONTH)).incomes == [income]
