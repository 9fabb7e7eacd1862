"""Monthly summary computation."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from attendance_ledger.calculators.time_arithmetic import minutes_to_hours, quantize_hours
from attendance_ledger.calculators.types import (
    PAID_LEAVE_WEIGHTS,
    DailyRecord,
    MonthlySummary,
    WorkTypeCode,
)


def compute_summary(records: Iterable[DailyRecord]) -> MonthlySummary:
    """Fold a month's records into its summary.

    Work-day buckets only count records with a positive actual work time;
    holiday work and regular work are disjoint. Absence and paid-leave
    counts go by work-type code alone. The fold is commutative, so record
    order never affects the result.
    """
    total_work_days = 0
    regular_work_days = 0
    holiday_work_days = 0
    absence_days = 0
    total_minutes = 0
    late_early = Decimal("0")
    paid_leave = Decimal("0")

    for record in records:
        actual = record.actual_work_minutes
        if actual:
            total_work_days += 1
            total_minutes += actual
            if record.work_type == WorkTypeCode.HOLIDAY_WORK:
                holiday_work_days += 1
            else:
                regular_work_days += 1

        if record.work_type == WorkTypeCode.ABSENCE:
            absence_days += 1

        if record.work_type is not None:
            paid_leave += PAID_LEAVE_WEIGHTS.get(record.work_type, Decimal("0"))

        late_early += quantize_hours(record.late_early_hours)

    return MonthlySummary(
        total_work_days=total_work_days,
        regular_work_days=regular_work_days,
        holiday_work_days=holiday_work_days,
        absence_days=absence_days,
        total_work_minutes=total_minutes,
        total_work_hours=minutes_to_hours(total_minutes),
        late_early_hours=late_early,
        paid_leave_days=paid_leave,
    )
