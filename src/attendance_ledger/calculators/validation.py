"""Pre-submit validation of a month's daily records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from attendance_ledger.calculators.time_arithmetic import parse_time_of_day
from attendance_ledger.calculators.types import DailyRecord
from attendance_ledger.errors import FormatError


@dataclass(frozen=True)
class Violation:
    """A single validation problem on one date."""

    work_date: date
    message: str
    field: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "work_date": self.work_date.isoformat(),
            "field": self.field,
            "message": self.message,
        }


def _is_set(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def validate_record(record: DailyRecord) -> list[Violation]:
    """Validate one record, returning every violation found."""
    violations: list[Violation] = []
    parsed = {}

    for field_name in ("start_time", "end_time"):
        raw = getattr(record, field_name)
        if not _is_set(raw):
            continue
        try:
            parsed[field_name] = parse_time_of_day(raw)
        except FormatError as e:
            violations.append(
                Violation(record.work_date, f"{field_name} is malformed: {e.reason}", field_name)
            )

    if record.break_minutes is not None and record.break_minutes < 0:
        violations.append(
            Violation(record.work_date, "break_minutes must be non-negative", "break_minutes")
        )

    has_start = _is_set(record.start_time)
    has_end = _is_set(record.end_time)
    if has_start != has_end:
        violations.append(
            Violation(record.work_date, "start_time and end_time must be entered together")
        )

    start, end = parsed.get("start_time"), parsed.get("end_time")
    if start is not None and end is not None and end < start:
        violations.append(
            Violation(record.work_date, "end_time is earlier than start_time", "end_time")
        )

    row = {
        "start_time": record.start_time,
        "end_time": record.end_time,
        "break_minutes": record.break_minutes,
        "remarks": record.remarks,
    }
    missing = [name for name, value in row.items() if not _is_set(value)]
    if missing and len(missing) < len(row):
        violations.append(
            Violation(record.work_date, f"incomplete row, missing: {', '.join(missing)}")
        )

    return violations


def validate_records(records: Iterable[DailyRecord]) -> list[Violation]:
    """Validate a month of records.

    Never short-circuits: the full list is returned in date order so the
    caller can surface every problem at once. An empty list means the
    ledger may be submitted.
    """
    violations: list[Violation] = []
    for record in sorted(records, key=lambda r: r.work_date):
        violations.extend(validate_record(record))
    return violations


def dates_outside_month(dates: Iterable[date], year: int, month: int) -> list[date]:
    """Return the dates that do not fall in the given year/month, sorted."""
    return sorted(d for d in dates if d.year != year or d.month != month)
