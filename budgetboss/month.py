"""Month identifier helpers. Months are `YYYY-MM` strings throughout."""

import re
from datetime import date, datetime
from typing import Optional

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> tuple[int, int]:
    """Split `YYYY-MM` into (year, month); raises ValueError if malformed."""
    match = _MONTH_RE.match(month)
    if not match:
        raise ValueError(f"Invalid month identifier: {month!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def shift_month(month: str, delta: int) -> str:
    year, num = parse_month(month)
    index = year * 12 + (num - 1) + delta
    return format_month(index // 12, index % 12 + 1)


def get_current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    return format_month(today.year, today.month)


def get_previous_month(month: str) -> str:
    return shift_month(month, -1)


def get_next_month(month: str) -> str:
    return shift_month(month, 1)


def get_month_options(current_month: str, span: int = 6) -> list[str]:
    """The `span` months either side of `current_month`, in order."""
    return [shift_month(current_month, i) for i in range(-span, span + 1)]


def month_of(value: datetime | date | str) -> str:
    """Month of a date, datetime or ISO date string."""
    if isinstance(value, str):
        value = value[:7]
        parse_month(value)
        return value
    return format_month(value.year, value.month)


def month_date_range(month: str) -> tuple[str, str]:
    """
    Inclusive lower and exclusive upper bound for a month's dates.

    Day 32 never exists, so "{month}-32" sorts after every ISO date and
    timestamp of the month without computing month lengths.
    """
    parse_month(month)
    return f"{month}-01", f"{month}-32"


def display_month(month: str) -> str:
    """Human label, e.g. "August 2025"."""
    year, num = parse_month(month)
    return date(year, num, 1).strftime("%B %Y")
