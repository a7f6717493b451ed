"""Tests for the Google Sheets remote store, against an in-memory worksheet."""

from decimal import Decimal

import pytest

from budgetboss.models.budget import Budget, Category, FixedExpense, Transaction
from budgetboss.services.storage import (
    DuplicateError,
    GoogleSheetsRemoteStore,
    RowFilter,
)
from budgetboss.services.storage.google_sheets import (
    TABLE_COLUMNS,
    cells_to_row,
    row_to_cells,
)

from tests.conftest import at


class FakeWorksheet:
    """The subset of gspread.Worksheet the store uses."""

    def __init__(self, header: list[str]):
        self.values: list[list[str]] = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.values]

    def append_row(self, values, value_input_option=None):
        self.values.append(list(values))

    def update(self, range_name, values, value_input_option=None):
        row_number = int(range_name[1:])
        self.values[row_number - 1] = list(values[0])


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient; one worksheet per table."""

    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def get_table_sheet(self, table: str) -> FakeWorksheet:
        if table not in self.sheets:
            self.sheets[table] = FakeWorksheet(TABLE_COLUMNS[table])
        return self.sheets[table]


@pytest.fixture
def client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sheets_store(client) -> GoogleSheetsRemoteStore:
    return GoogleSheetsRemoteStore(client)


class TestCellConversion:

    def test_round_trip_keeps_types_as_text(self):
        tx = Transaction(
            budget_id="b1",
            amount=Decimal("12.50"),
            description="Lunch",
            is_unplanned=True,
            date=at(3),
        )
        cells = row_to_cells("transactions", tx.to_row())
        assert cells[TABLE_COLUMNS["transactions"].index("is_unplanned")] == "TRUE"
        assert cells[TABLE_COLUMNS["transactions"].index("category_id")] == ""

        row = cells_to_row("transactions", TABLE_COLUMNS["transactions"], cells)
        assert row["category_id"] is None
        assert row["is_unplanned"] is True
        assert Transaction.model_validate(row) == tx

    def test_missing_trailing_cells(self):
        row = cells_to_row("budgets", TABLE_COLUMNS["budgets"], ["b1", "u1", "2025-08"])
        assert row["name"] is None
        assert row["deleted"] is False


class TestGoogleSheetsRemoteStore:

    @pytest.mark.asyncio
    async def test_insert_and_get(self, sheets_store):
        budget = Budget(user_id="u1", month="2025-08")
        await sheets_store.insert("budgets", budget.to_row())

        row = await sheets_store.get("budgets", budget.id)
        assert Budget.model_validate(row) == budget
        assert await sheets_store.get("budgets", "missing") is None

    @pytest.mark.asyncio
    async def test_unique_owner_month(self, sheets_store):
        await sheets_store.insert("budgets", Budget(user_id="u1", month="2025-08").to_row())
        with pytest.raises(DuplicateError):
            await sheets_store.insert("budgets", Budget(user_id="u1", month="2025-08").to_row())
        await sheets_store.insert("budgets", Budget(user_id="u2", month="2025-08").to_row())

    @pytest.mark.asyncio
    async def test_duplicate_id(self, sheets_store):
        budget = Budget(user_id="u1", month="2025-08")
        await sheets_store.insert("budgets", budget.to_row())
        with pytest.raises(DuplicateError):
            await sheets_store.insert("budgets", budget.to_row())

    @pytest.mark.asyncio
    async def test_upsert_replaces_in_place(self, sheets_store, client):
        category = Category(budget_id="b1", name="Food", budgeted=Decimal("100"))
        await sheets_store.upsert("categories", category.to_row())
        updated = category.touched(budgeted=Decimal("150"))
        await sheets_store.upsert("categories", updated.to_row())

        assert len(client.sheets["categories"].values) == 2
        row = await sheets_store.get("categories", category.id)
        assert Category.model_validate(row).budgeted == Decimal("150")

    @pytest.mark.asyncio
    async def test_select_with_filters(self, sheets_store):
        inside = Transaction(budget_id="b1", amount=Decimal("1"), description="Inside", date=at(31))
        outside = Transaction(
            budget_id="b1", amount=Decimal("1"), description="Outside", date=at(1, month=9)
        )
        other = Transaction(budget_id="b2", amount=Decimal("1"), description="Other", date=at(5))
        for tx in (inside, outside, other):
            await sheets_store.upsert("transactions", tx.to_row())

        rows = await sheets_store.select("transactions", [
            RowFilter.eq("budget_id", "b1"),
            RowFilter.gte("date", "2025-08-01"),
            RowFilter.lt("date", "2025-08-32"),
        ])
        assert [r["id"] for r in rows] == [inside.id]

    @pytest.mark.asyncio
    async def test_select_deleted_flag(self, sheets_store):
        kept = Category(budget_id="b1", name="Food")
        gone = Category(budget_id="b1", name="Old", deleted=True)
        await sheets_store.upsert("categories", kept.to_row())
        await sheets_store.upsert("categories", gone.to_row())

        rows = await sheets_store.select("categories", [RowFilter.eq("deleted", False)])
        assert [r["id"] for r in rows] == [kept.id]

    @pytest.mark.asyncio
    async def test_fixed_expenses_table(self, sheets_store, client):
        rent = FixedExpense(budget_id="b1", name="Rent", amount=Decimal("1200.00"))
        await sheets_store.upsert("fixed_expenses", rent.to_row())

        assert client.sheets["fixed_expenses"].values[0] == TABLE_COLUMNS["fixed_expenses"]
        row = await sheets_store.get("fixed_expenses", rent.id)
        assert FixedExpense.model_validate(row) == rent
