"""Expense line items and receipt references."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable

from attendance_ledger.calculators.validation import Violation, dates_outside_month


class ExpenseCategory(str, Enum):
    COMMUTE = "commute"
    BUSINESS = "business"


class TripType(str, Enum):
    ONE_WAY = "one-way"
    ROUND_TRIP = "round-trip"
    OTHER = "other"


@dataclass
class ExpenseLine:
    """A commute or business expense line."""

    work_date: date
    amount: int
    carrier_or_lodging: str | None = None
    from_location: str | None = None
    to_location: str | None = None
    expense_type: str | None = None
    trip_type: TripType = TripType.ONE_WAY
    remarks: str | None = None


@dataclass
class Receipt:
    """Reference to an uploaded receipt. The file itself lives in the blob store."""

    file_name: str
    blob_reference: str
    uploaded_at: datetime
    file_size: int | None = None
    file_type: str | None = None
    remarks: str | None = None
    url: str | None = None


def validate_expense_lines(lines: Iterable[ExpenseLine]) -> list[Violation]:
    """Hard checks on expense lines: every amount must be a positive integer."""
    violations: list[Violation] = []
    for line in sorted(lines, key=lambda item: item.work_date):
        if isinstance(line.amount, bool) or not isinstance(line.amount, int):
            violations.append(Violation(line.work_date, "amount must be an integer", "amount"))
        elif line.amount <= 0:
            violations.append(Violation(line.work_date, "amount must be positive", "amount"))
    return violations


def out_of_month_warnings(lines: Iterable[ExpenseLine], year: int, month: int) -> list[Violation]:
    """Soft check: lines dated outside the ledger month are reported, not refused."""
    return [
        Violation(d, f"dated outside {year}-{month:02d}", "work_date")
        for d in dates_outside_month((line.work_date for line in lines), year, month)
    ]
