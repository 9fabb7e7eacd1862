"""Type definitions for the attendance calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from attendance_ledger.calculators.time_arithmetic import (
    compute_actual_work,
    parse_time_of_day,
    quantize_hours,
)
from attendance_ledger.errors import FormatError


class WorkTypeCode(str, Enum):
    """Classification of a calendar day."""

    REGULAR = "regular"
    HOLIDAY_WORK = "holiday-work"
    PAID_LEAVE = "paid-leave"
    AM_LEAVE = "am-leave"
    PM_LEAVE = "pm-leave"
    SPECIAL_LEAVE = "special-leave"
    COMPENSATORY_LEAVE = "compensatory-leave"
    COMPENSATORY_LEAVE_PLANNED = "compensatory-leave-planned"
    ABSENCE = "absence"
    LATE = "late"
    EARLY_LEAVE = "early-leave"
    DELAY = "delay"
    SHIFT = "shift"
    BUSINESS_HOLIDAY = "business-holiday"


# Paid-leave fraction credited per record
PAID_LEAVE_WEIGHTS: dict[WorkTypeCode, Decimal] = {
    WorkTypeCode.PAID_LEAVE: Decimal("1.0"),
    WorkTypeCode.AM_LEAVE: Decimal("0.5"),
    WorkTypeCode.PM_LEAVE: Decimal("0.5"),
}

TIME_FIELDS = ("start_time", "end_time")

# Largest late/early amount the ledger column holds
MAX_LATE_EARLY_HOURS = Decimal("9999.99")


class SanitizeStatus(str, Enum):
    """Outcome of writing a raw value through the sanitize-on-write boundary."""

    OK = "ok"
    EMPTY = "empty"
    CLEARED = "cleared"


@dataclass(frozen=True)
class SanitizeResult:
    """Tagged result of a sanitized field write.

    CLEARED means the raw input was malformed and the field was emptied;
    callers decide whether to warn the user.
    """

    status: SanitizeStatus
    value: Any = None
    raw: Any = None
    reason: str | None = None

    @property
    def cleared(self) -> bool:
        return self.status == SanitizeStatus.CLEARED


@dataclass
class DailyRecord:
    """One calendar day of a monthly attendance ledger."""

    work_date: date
    start_time: str | None = None
    end_time: str | None = None
    break_minutes: int | None = None
    work_type: WorkTypeCode | None = None
    remarks: str | None = None
    late_early_hours: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        self.late_early_hours = quantize_hours(self.late_early_hours)

    def set_time(self, field_name: str, raw: object) -> SanitizeResult:
        """Parse and store a start/end time, clearing the field on bad input."""
        if field_name not in TIME_FIELDS:
            raise ValueError(f"Unknown time field: {field_name}")

        if raw is None or str(raw).strip() == "":
            setattr(self, field_name, None)
            return SanitizeResult(SanitizeStatus.EMPTY, raw=raw)

        try:
            value = str(parse_time_of_day(raw))
        except FormatError as e:
            setattr(self, field_name, None)
            return SanitizeResult(SanitizeStatus.CLEARED, raw=raw, reason=e.reason)

        setattr(self, field_name, value)
        return SanitizeResult(SanitizeStatus.OK, value=value, raw=raw)

    def set_break(self, raw: object) -> SanitizeResult:
        """Store the break length.

        Accepts whole minutes or an ``HH:MM`` / ``HHMM`` duration string.
        """
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            self.break_minutes = None
            return SanitizeResult(SanitizeStatus.EMPTY, raw=raw)

        if isinstance(raw, int) and not isinstance(raw, bool):
            if raw < 0:
                self.break_minutes = None
                return SanitizeResult(
                    SanitizeStatus.CLEARED, raw=raw, reason="break must be non-negative"
                )
            self.break_minutes = raw
            return SanitizeResult(SanitizeStatus.OK, value=raw, raw=raw)

        try:
            minutes = parse_time_of_day(raw).total_minutes
        except FormatError as e:
            self.break_minutes = None
            return SanitizeResult(SanitizeStatus.CLEARED, raw=raw, reason=e.reason)

        self.break_minutes = minutes
        return SanitizeResult(SanitizeStatus.OK, value=minutes, raw=raw)

    def recompute_actual(self) -> int | None:
        """Recompute worked minutes from the current time fields."""
        return compute_actual_work(self.start_time, self.end_time, self.break_minutes)

    @property
    def actual_work_minutes(self) -> int | None:
        return self.recompute_actual()

    @property
    def is_blank(self) -> bool:
        """True when no user-entered field is set."""
        return (
            not self.start_time
            and not self.end_time
            and self.break_minutes is None
            and not self.remarks
            and self.work_type is None
            and not self.late_early_hours
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_date": self.work_date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "break_minutes": self.break_minutes,
            "work_type": self.work_type.value if self.work_type else None,
            "remarks": self.remarks,
            "late_early_hours": str(self.late_early_hours),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyRecord:
        work_type = data.get("work_type")
        return cls(
            work_date=date.fromisoformat(data["work_date"]),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            break_minutes=data.get("break_minutes"),
            work_type=WorkTypeCode(work_type) if work_type else None,
            remarks=data.get("remarks"),
            late_early_hours=Decimal(data.get("late_early_hours") or "0"),
        )


@dataclass(frozen=True)
class MonthlySummary:
    """Derived monthly totals. Always recomputable from the records."""

    total_work_days: int = 0
    regular_work_days: int = 0
    holiday_work_days: int = 0
    absence_days: int = 0
    total_work_minutes: int = 0
    total_work_hours: Decimal = Decimal("0.00")
    late_early_hours: Decimal = Decimal("0")
    paid_leave_days: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_work_days": self.total_work_days,
            "regular_work_days": self.regular_work_days,
            "holiday_work_days": self.holiday_work_days,
            "absence_days": self.absence_days,
            "total_work_minutes": self.total_work_minutes,
            "total_work_hours": str(self.total_work_hours),
            "late_early_hours": str(self.late_early_hours),
            "paid_leave_days": str(self.paid_leave_days),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthlySummary:
        return cls(
            total_work_days=int(data["total_work_days"]),
            regular_work_days=int(data["regular_work_days"]),
            holiday_work_days=int(data["holiday_work_days"]),
            absence_days=int(data["absence_days"]),
            total_work_minutes=int(data["total_work_minutes"]),
            total_work_hours=Decimal(data["total_work_hours"]),
            late_early_hours=Decimal(data["late_early_hours"]),
            paid_leave_days=Decimal(data["paid_leave_days"]),
        )
