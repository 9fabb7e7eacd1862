"""Monthly attendance ledger, daily record and approval audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from attendance_ledger.calculators.time_arithmetic import quantize_hours
from attendance_ledger.calculators.types import DailyRecord, WorkTypeCode
from attendance_ledger.models.base import AuditMixin, Base, TimestampMixin


class MonthlyLedger(Base, AuditMixin):
    """One user's attendance ledger for a calendar month."""

    __tablename__ = "attendance_ledger"

    ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    employee_id: Mapped[str | None] = mapped_column(String, nullable=True)
    branch: Mapped[str | None] = mapped_column(String, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(2), nullable=False, default="00")
    workplace: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Cache of the derived summary, rewritten on every save
    summary_cache: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "year", "month", name="attendance_ledger_owner_month_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="attendance_ledger_month_check"),
        CheckConstraint(
            "status IN ('00', '01', '02', '03', '04')",
            name="attendance_ledger_status_check",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<MonthlyLedger {self.ledger_id} owner={self.owner_id} "
            f"{self.year}-{self.month:02d} status={self.status} v{self.version}>"
        )


class DailyRecordRow(Base, TimestampMixin):
    """Persisted daily record. actual_work_minutes is a cache column."""

    __tablename__ = "attendance_daily_record"

    record_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attendance_ledger.ledger_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    break_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    work_type: Mapped[str | None] = mapped_column(String, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    late_early_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    actual_work_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("ledger_id", "work_date", name="attendance_daily_record_date_unique"),
        CheckConstraint(
            "break_minutes IS NULL OR break_minutes >= 0",
            name="attendance_daily_record_break_check",
        ),
    )

    def to_domain(self) -> DailyRecord:
        """Rebuild the domain record. The cached actual time is ignored."""
        return DailyRecord(
            work_date=self.work_date,
            start_time=self.start_time,
            end_time=self.end_time,
            break_minutes=self.break_minutes,
            work_type=WorkTypeCode(self.work_type) if self.work_type else None,
            remarks=self.remarks,
            late_early_hours=Decimal(self.late_early_hours or 0),
        )

    @classmethod
    def from_domain(cls, ledger_id: UUID, record: DailyRecord) -> DailyRecordRow:
        return cls(
            ledger_id=ledger_id,
            work_date=record.work_date,
            start_time=record.start_time,
            end_time=record.end_time,
            break_minutes=record.break_minutes,
            work_type=record.work_type.value if record.work_type else None,
            remarks=record.remarks,
            late_early_hours=quantize_hours(record.late_early_hours),
            actual_work_minutes=record.actual_work_minutes,
        )


class ApprovalAuditEntry(Base, TimestampMixin):
    """Append-only history of approve/reject actions on a ledger."""

    __tablename__ = "attendance_approval"

    entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attendance_ledger.ledger_id", ondelete="CASCADE"),
        nullable=False,
    )
    stage: Mapped[str] = mapped_column(String, nullable=False)
    outcome: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Ledger version produced by this action; orders entries per ledger
    ledger_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("ledger_id", "ledger_version", name="attendance_approval_version_unique"),
        CheckConstraint("stage IN ('leader', 'admin')", name="attendance_approval_stage_check"),
        CheckConstraint(
            "outcome IN ('approved', 'returned')",
            name="attendance_approval_outcome_check",
        ),
        CheckConstraint(
            "outcome <> 'returned' OR (comment IS NOT NULL AND comment <> '')",
            name="attendance_approval_comment_check",
        ),
    )
