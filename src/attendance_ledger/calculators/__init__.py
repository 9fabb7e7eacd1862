"""Attendance calculation pipeline."""

from attendance_ledger.calculators.summary import compute_summary
from attendance_ledger.calculators.time_arithmetic import (
    TimeOfDay,
    compute_actual_work,
    parse_time_of_day,
    sum_durations,
)
from attendance_ledger.calculators.types import (
    DailyRecord,
    MonthlySummary,
    SanitizeResult,
    SanitizeStatus,
    WorkTypeCode,
)
from attendance_ledger.calculators.validation import Violation, validate_records

__all__ = [
    "DailyRecord",
    "MonthlySummary",
    "SanitizeResult",
    "SanitizeStatus",
    "TimeOfDay",
    "Violation",
    "WorkTypeCode",
    "compute_actual_work",
    "compute_summary",
    "parse_time_of_day",
    "sum_durations",
    "validate_records",
]
