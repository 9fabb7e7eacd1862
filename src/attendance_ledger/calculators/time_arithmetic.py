"""Clock-time parsing and worked-duration arithmetic.

All durations are whole minutes. Times are minute-precision, 24h clock,
and never wrap past midnight: an end earlier than its start is an invalid
interval rather than an overnight shift.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from attendance_ledger.errors import FormatError

_NON_DIGITS = re.compile(r"\D")

MINUTES_PER_HOUR = 60
HOURS_QUANTUM = Decimal("0.01")


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """A minute-precision time of day."""

    hour: int
    minute: int

    @property
    def total_minutes(self) -> int:
        return self.hour * MINUTES_PER_HOUR + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def parse_time_of_day(raw: object) -> TimeOfDay:
    """Parse a clock-time entry such as ``"0930"`` or ``"09:30"``.

    Non-digit characters are stripped first; exactly four digits must
    remain, forming HHMM with hour 0-23 and minute 0-59.

    Raises FormatError for anything else.
    """
    if raw is None:
        raise FormatError(raw, "value is missing")
    if isinstance(raw, TimeOfDay):
        return raw

    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) != 4:
        raise FormatError(raw, "expected exactly 4 digits (HHMM)")

    hour = int(digits[:2])
    minute = int(digits[2:])
    if hour > 23:
        raise FormatError(raw, f"hour {hour} out of range 0-23")
    if minute > 59:
        raise FormatError(raw, f"minute {minute} out of range 0-59")

    return TimeOfDay(hour, minute)


def try_parse_time_of_day(raw: object) -> TimeOfDay | None:
    """Parse a time of day, returning None for empty or malformed input."""
    if raw is None or raw == "":
        return None
    try:
        return parse_time_of_day(raw)
    except FormatError:
        return None


def compute_actual_work(
    start: object,
    end: object,
    break_minutes: int | None,
) -> int | None:
    """Compute worked minutes as ``(end - start) - break``.

    Returns None when any input is missing or malformed, or when end is
    earlier than start. A break at least as long as the interval yields 0.
    """
    start_time = try_parse_time_of_day(start)
    end_time = try_parse_time_of_day(end)
    if start_time is None or end_time is None:
        return None
    if break_minutes is None or isinstance(break_minutes, bool) or break_minutes < 0:
        return None
    if end_time < start_time:
        return None

    worked = end_time.total_minutes - start_time.total_minutes - break_minutes
    return max(worked, 0)


def sum_durations(durations: Iterable[int | None]) -> int:
    """Total a collection of minute durations, skipping absent ones."""
    return sum(d for d in durations if d is not None)


def minutes_to_hours(minutes: int) -> Decimal:
    """Convert minutes to decimal hours rounded to two places."""
    return (Decimal(minutes) / MINUTES_PER_HOUR).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_hours(value: Decimal | int | str | None) -> Decimal:
    """Round an hour amount to the two places the ledger stores."""
    return Decimal(value or 0).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def format_minutes(minutes: int) -> str:
    """Format a monthly total as ``HHH:MM``."""
    hours, mins = divmod(minutes, MINUTES_PER_HOUR)
    return f"{hours:03d}:{mins:02d}"
