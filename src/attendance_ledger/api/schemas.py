"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from attendance_ledger.calculators.expenses import TripType
from attendance_ledger.calculators.types import WorkTypeCode


# ============================================================================
# Attendance schemas
# ============================================================================


class DailyRecordIn(BaseModel):
    """Raw daily entry as typed by the user.

    Times accept any form with four digits (``0900``, ``09:00``); break
    accepts whole minutes or an ``HH:MM`` duration. Malformed values are
    cleared and reported back in ``cleared_fields``.
    """

    work_date: date
    start_time: str | None = None
    end_time: str | None = None
    break_minutes: int | str | None = None
    work_type: WorkTypeCode | None = None
    remarks: str | None = None
    late_early_hours: Decimal = Field(default=Decimal("0"), ge=0, max_digits=6, decimal_places=2)


class DailyRecordOut(BaseModel):
    """Stored daily record with its derived actual work time."""

    work_date: date
    start_time: str | None = None
    end_time: str | None = None
    break_minutes: int | None = None
    work_type: WorkTypeCode | None = None
    remarks: str | None = None
    late_early_hours: Decimal
    actual_work_minutes: int | None = None


class ClearedField(BaseModel):
    """A field that was emptied because its input was malformed."""

    work_date: date
    field: str
    raw: Any = None
    reason: str | None = None


class SummaryOut(BaseModel):
    """Monthly summary."""

    total_work_days: int
    regular_work_days: int
    holiday_work_days: int
    absence_days: int
    total_work_minutes: int
    total_work_hours: Decimal
    late_early_hours: Decimal
    paid_leave_days: Decimal


class AuditEntryOut(BaseModel):
    """Approval history entry."""

    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    ledger_id: UUID
    stage: str
    outcome: str
    actor_id: UUID
    comment: str | None = None
    ledger_version: int
    created_at: datetime


class LedgerSaveRequest(BaseModel):
    """Schema for saving a month of attendance."""

    records: list[DailyRecordIn] = Field(default_factory=list)
    workplace: str | None = None
    employee_id: str | None = None
    branch: str | None = None
    expected_version: int | None = None


class LedgerResponse(BaseModel):
    """Schema for a ledger with its records and recomputed summary."""

    ledger_id: UUID | None = None
    owner_id: UUID
    employee_id: str | None = None
    branch: str | None = None
    year: int
    month: int
    status: str
    status_label: str
    workplace: str | None = None
    version: int
    editable: bool
    allowed_events: list[str]
    submitted_at: datetime | None = None
    updated_at: datetime | None = None
    records: list[DailyRecordOut]
    summary: SummaryOut
    leader_review: AuditEntryOut | None = None
    admin_review: AuditEntryOut | None = None
    cleared_fields: list[ClearedField] = Field(default_factory=list)


class LedgerListItem(BaseModel):
    """Schema for a ledger row in the approver list."""

    ledger_id: UUID
    owner_id: UUID
    employee_id: str | None = None
    branch: str | None = None
    year: int
    month: int
    status: str
    status_label: str
    version: int
    summary: SummaryOut | None = None


class LedgerListResponse(BaseModel):
    """Schema for listing ledgers."""

    items: list[LedgerListItem]
    total: int


# ============================================================================
# Workflow schemas
# ============================================================================


class TransitionRequest(BaseModel):
    """Schema for submit/approve/reject/reopen requests."""

    expected_version: int
    comment: str | None = None


class TransitionResponse(BaseModel):
    """Schema for an accepted status transition."""

    ledger_id: UUID
    from_status: str
    to_status: str
    version: int
    audit_entry: AuditEntryOut | None = None


class AuditHistoryResponse(BaseModel):
    items: list[AuditEntryOut]


# ============================================================================
# Expense schemas
# ============================================================================


class ExpenseLineIn(BaseModel):
    """Commute or business expense line."""

    work_date: date
    amount: int = Field(gt=0)
    carrier_or_lodging: str | None = None
    from_location: str | None = None
    to_location: str | None = None
    expense_type: str | None = None
    trip_type: TripType = TripType.ONE_WAY
    remarks: str | None = None


class ExpenseLineOut(ExpenseLineIn):
    model_config = ConfigDict(from_attributes=True)


class ReceiptIn(BaseModel):
    """Receipt reference; the file is already in the blob store."""

    file_name: str
    blob_reference: str
    uploaded_at: datetime
    file_size: int | None = None
    file_type: str | None = None
    remarks: str | None = None


class ReceiptOut(ReceiptIn):
    model_config = ConfigDict(from_attributes=True)

    url: str | None = None


class ViolationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    work_date: date
    field: str | None = None
    message: str


class ExpenseSaveRequest(BaseModel):
    """Schema for saving a month of expenses."""

    commute_items: list[ExpenseLineIn] = Field(default_factory=list)
    business_items: list[ExpenseLineIn] = Field(default_factory=list)
    receipts: list[ReceiptIn] = Field(default_factory=list)
    employee_id: str | None = None
    branch: str | None = None
    expected_version: int | None = None


class ExpenseResponse(BaseModel):
    """Schema for a month of expenses."""

    model_config = ConfigDict(from_attributes=True)

    expense_ledger_id: UUID | None = None
    year: int
    month: int
    version: int
    editable: bool
    total_amount: int
    commute_items: list[ExpenseLineOut]
    business_items: list[ExpenseLineOut]
    receipts: list[ReceiptOut]
    warnings: list[ViolationOut]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
    reason: str | None = None
    violations: list[ViolationOut] | None = None
