"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets is used as the remote backend because:
1. The owner can inspect their synced data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one person's budget)
- No transactions (the sync engine never relies on them)
- Limited query capabilities (we filter in Python)

Each remote table is one worksheet whose first row is the header.
Cells are stored as text; booleans as TRUE/FALSE and empty cells as None.
"""

from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budgetboss.config import GoogleSheetsSettings, get_settings
from budgetboss.models.budget import new_id, utc_now
from budgetboss.services.storage.interface import (
    DuplicateError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    RowFilter,
    StorageError,
    UNIQUE_TOGETHER,
)


# Column layout for each remote table
TABLE_COLUMNS: dict[str, list[str]] = {
    "budgets": [
        "id", "user_id", "month", "name",
        "created_at", "updated_at", "deleted",
    ],
    "incomes": [
        "id", "budget_id", "name", "amount",
        "created_at", "updated_at", "deleted",
    ],
    "fixed_expenses": [
        "id", "budget_id", "name", "amount",
        "created_at", "updated_at", "deleted",
    ],
    "categories": [
        "id", "budget_id", "name", "budgeted", "borrowed", "color", "notes",
        "created_at", "updated_at", "deleted",
    ],
    "transactions": [
        "id", "budget_id", "category_id", "amount", "description", "account",
        "is_unplanned", "date", "created_at", "updated_at", "deleted",
    ],
    "settings": [
        "id", "user_id", "currency", "first_day_of_week", "theme",
        "created_at", "updated_at", "deleted",
    ],
}

BOOL_COLUMNS = {"deleted", "is_unplanned"}

_remote_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(RemoteUnavailableError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise RemoteUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise RemoteUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a remote table."""
        if table not in TABLE_COLUMNS:
            raise StorageError(f"Unknown remote table: {table}")
        if table in self._worksheets:
            return self._worksheets[table]

        spreadsheet = self.get_spreadsheet()
        columns = TABLE_COLUMNS[table]
        try:
            sheet = spreadsheet.worksheet(table)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=table,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[table] = sheet
        return sheet


def row_to_cells(table: str, row: dict) -> list[str]:
    """Convert a row dict to worksheet cells in column order."""
    cells = []
    for column in TABLE_COLUMNS[table]:
        value = row.get(column)
        if value is None:
            cells.append("")
        elif isinstance(value, bool):
            cells.append("TRUE" if value else "FALSE")
        else:
            cells.append(str(value))
    return cells


def cells_to_row(table: str, header: list[str], cells: list[str]) -> dict:
    """Convert worksheet cells back to a row dict keyed by the header."""
    row = {}
    for idx, column in enumerate(header):
        if column not in TABLE_COLUMNS[table]:
            continue
        # Handle missing trailing cells gracefully
        value = cells[idx] if idx < len(cells) else ""
        if column in BOOL_COLUMNS:
            row[column] = value.strip().upper() == "TRUE"
        else:
            row[column] = value if value != "" else None
    return row


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote row store.

    Rows are kept one per line; the id is always the first column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_table(self, table: str) -> tuple[gspread.Worksheet, list[str], list[list[str]]]:
        sheet = self._client.get_table_sheet(table)
        all_values = sheet.get_all_values()
        header = all_values[0] if all_values else TABLE_COLUMNS[table]
        return sheet, header, all_values[1:]

    def _rows(self, table: str) -> list[dict]:
        _, header, body = self._read_table(table)
        return [
            cells_to_row(table, header, cells)
            for cells in body
            if cells and cells[0]  # Skip empty rows
        ]

    def _check_unique(self, table: str, row: dict, existing: list[dict]) -> None:
        columns = UNIQUE_TOGETHER.get(table)
        if not columns or row.get("deleted"):
            return
        key = tuple(str(row.get(c)) for c in columns)
        for other in existing:
            if other["id"] == row["id"] or other.get("deleted"):
                continue
            if tuple(str(other.get(c)) for c in columns) == key:
                raise DuplicateError(
                    f"{table} already has a row for {dict(zip(columns, key))}"
                )

    @staticmethod
    def _with_defaults(row: dict) -> dict:
        now = utc_now().isoformat()
        stored = dict(row)
        stored.setdefault("id", new_id())
        stored.setdefault("created_at", now)
        stored.setdefault("updated_at", now)
        stored.setdefault("deleted", False)
        return stored

    @_remote_retry
    async def select(
        self,
        table: str,
        filters: Optional[list[RowFilter]] = None,
    ) -> list[dict]:
        """Select rows, filtering in Python."""
        try:
            rows = self._rows(table)
        except StorageError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to read {table}: {e}")
        return [row for row in rows if all(f.matches(row) for f in (filters or []))]

    @_remote_retry
    async def get(self, table: str, record_id: str) -> Optional[dict]:
        """Retrieve a row by id."""
        try:
            for row in self._rows(table):
                if row["id"] == record_id:
                    return row
            return None
        except StorageError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to read {table}: {e}")

    @_remote_retry
    async def insert(self, table: str, row: dict) -> dict:
        """Append a new row."""
        stored = self._with_defaults(row)
        try:
            existing = self._rows(table)
            if any(other["id"] == stored["id"] for other in existing):
                raise DuplicateError(f"{table} already has id {stored['id']}")
            self._check_unique(table, stored, existing)

            sheet = self._client.get_table_sheet(table)
            sheet.append_row(row_to_cells(table, stored), value_input_option="RAW")
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to insert into {table}: {e}")

    @_remote_retry
    async def upsert(self, table: str, row: dict) -> dict:
        """Replace the row with the same id, or append it."""
        stored = self._with_defaults(row)
        try:
            sheet, header, body = self._read_table(table)
            existing = [
                cells_to_row(table, header, cells)
                for cells in body
                if cells and cells[0]
            ]
            self._check_unique(table, stored, existing)

            cells = row_to_cells(table, stored)
            # Row 1 is the header, so data starts at row 2
            for idx, current in enumerate(body, start=2):
                if current and current[0] == stored["id"]:
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[cells],
                        value_input_option="RAW",
                    )
                    return stored

            sheet.append_row(cells, value_input_option="RAW")
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to upsert into {table}: {e}")
