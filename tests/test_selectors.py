"""Tests for the derived-metric selectors."""

from decimal import Decimal

from budgetboss import selectors
from budgetboss.models.budget import (
    BudgetState,
    Category,
    CategoryHealth,
    FixedExpense,
    Income,
    Transaction,
)


def _category(name: str, budgeted: str, borrowed: str = "0", **kwargs) -> Category:
    return Category(
        budget_id="b1",
        name=name,
        budgeted=Decimal(budgeted),
        borrowed=Decimal(borrowed),
        **kwargs,
    )


def _tx(amount: str, category_id=None, unplanned: bool = False, deleted: bool = False) -> Transaction:
    return Transaction(
        budget_id="b1",
        category_id=category_id,
        amount=Decimal(amount),
        description="Something",
        is_unplanned=unplanned,
        deleted=deleted,
    )


class TestCategoryHealth:
    """Tests for health classification."""

    def test_warning_then_overspent(self):
        """850 of 1000 is a warning; another 200 makes it overspent by 50."""
        category = _category("Groceries", "1000")
        transactions = [_tx("850", category.id)]

        [result] = selectors.categories_with_spent([category], transactions)
        assert result.spent == Decimal("850")
        assert result.health == CategoryHealth.WARNING

        transactions.append(_tx("200", category.id))
        [result] = selectors.categories_with_spent([category], transactions)
        assert result.spent == Decimal("1050")
        assert result.health == CategoryHealth.OVERSPENT
        assert result.remaining == Decimal("-50")

    def test_exactly_at_threshold_is_healthy(self):
        assert selectors.category_health(Decimal("800"), Decimal("1000")) == CategoryHealth.HEALTHY

    def test_nothing_available_is_healthy(self):
        """A category with no capacity is never overspent."""
        assert selectors.category_health(Decimal("50"), Decimal("0")) == CategoryHealth.HEALTHY

    def test_borrowed_counts_toward_available(self):
        category = _category("Fun", "100", borrowed="100")
        [result] = selectors.categories_with_spent([category], [_tx("150", category.id)])
        assert result.health == CategoryHealth.HEALTHY
        assert result.remaining == Decimal("50")

    def test_custom_threshold(self):
        health = selectors.category_health(Decimal("60"), Decimal("100"), warning_threshold=0.5)
        assert health == CategoryHealth.WARNING


class TestTotals:
    """Tests for headline totals."""

    def test_amount_in_bank_and_allocation(self):
        """Unplanned spend drains the bank on top of planned spend."""
        incomes = [
            Income(budget_id="b1", name="Salary", amount=Decimal("4000")),
            Income(budget_id="b1", name="Side job", amount=Decimal("1000")),
        ]
        rent = _category("Rent", "2000")
        food = _category("Food", "1000")
        transactions = [
            _tx("1200", rent.id),
            _tx("300", food.id),
            _tx("500", unplanned=True),
        ]

        assert selectors.total_income(incomes) == Decimal("5000")
        assert selectors.total_budgeted([rent, food]) == Decimal("3000")
        assert selectors.total_spent(transactions) == Decimal("2000")
        assert selectors.total_unplanned_spent(transactions) == Decimal("500")
        assert selectors.amount_in_bank([rent, food], transactions) == Decimal("500")
        assert selectors.income_allocation_left(incomes, [rent, food]) == Decimal("2000")

    def test_deleted_transactions_never_count(self):
        food = _category("Food", "100")
        transactions = [_tx("30", food.id), _tx("70", food.id, deleted=True)]
        assert selectors.total_spent(transactions) == Decimal("30")
        assert selectors.category_spent(food.id, transactions) == Decimal("30")

    def test_unplanned_not_counted_against_categories(self):
        food = _category("Food", "100")
        tx = _tx("30", unplanned=True)
        assert selectors.category_spent(food.id, [tx]) == Decimal("0")

    def test_total_overspent(self):
        food = _category("Food", "100")
        fun = _category("Fun", "50")
        transactions = [_tx("130", food.id), _tx("20", fun.id)]
        assert selectors.total_overspent([food, fun], transactions) == Decimal("30")

    def test_total_fixed_expenses_skip_deleted(self):
        expenses = [
            FixedExpense(budget_id="b1", name="Rent", amount=Decimal("1200")),
            FixedExpense(budget_id="b1", name="Gym", amount=Decimal("35")),
            FixedExpense(budget_id="b1", name="Old", amount=Decimal("99"), deleted=True),
        ]
        assert selectors.total_fixed_expenses(expenses) == Decimal("1235")

    def test_empty_state(self):
        totals = selectors.summarize(BudgetState())
        assert all(value == Decimal("0") for value in totals.values())


class TestRankings:
    """Tests for category rankings and summaries."""

    def test_frequent_categories(self):
        food = _category("Food", "100")
        fun = _category("Fun", "100")
        transactions = [_tx("1", food.id), _tx("2", food.id), _tx("3", fun.id)]

        result = selectors.frequent_categories([food, fun], transactions)
        assert [(c.name, c.count) for c in result] == [("Food", 2), ("Fun", 1)]

    def test_frequent_categories_skips_removed_categories(self):
        food = _category("Food", "100")
        transactions = [_tx("1", "gone"), _tx("2", food.id)]
        result = selectors.frequent_categories([food], transactions)
        assert [c.category_id for c in result] == [food.id]

    def test_most_expensive_categories(self):
        cats = [_category(f"C{i}", "100", color=f"#00000{i}") for i in range(7)]
        transactions = [_tx(str(10 * (i + 1)), c.id) for i, c in enumerate(cats[:6])]

        result = selectors.most_expensive_categories(cats, transactions)
        assert len(result) == 5
        assert result[0].name == "C5"
        assert result[0].spent == Decimal("60")
        assert result[0].color == "#000005"
        assert "C6" not in [c.name for c in result]

    def test_borrowed_lent_summary(self):
        cats = [
            _category("A", "100", borrowed="40"),
            _category("B", "100", borrowed="-25"),
            _category("C", "100", borrowed="-15"),
        ]
        summary = selectors.borrowed_lent_summary(cats)
        assert summary.borrowed == Decimal("40")
        assert summary.lent == Decimal("40")
        assert selectors.total_borrowed(cats) == Decimal("0")

    def test_overspent_and_under_budget(self):
        food = _category("Food", "100")
        fun = _category("Fun", "100")
        rent = _category("Rent", "100")
        transactions = [_tx("150", food.id), _tx("20", fun.id), _tx("100", rent.id)]

        over = selectors.overspent_categories([food, fun, rent], transactions)
        under = selectors.under_budget_categories([food, fun, rent], transactions)
        assert [c.name for c in over] == ["Food"]
        assert [c.name for c in under] == ["Fun"]
