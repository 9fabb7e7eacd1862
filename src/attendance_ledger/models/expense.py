"""Expense ledger, line item and receipt models."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from attendance_ledger.calculators.expenses import ExpenseCategory, ExpenseLine, Receipt, TripType
from attendance_ledger.models.base import AuditMixin, Base, TimestampMixin


class ExpenseLedger(Base, AuditMixin):
    """Expense header for one user and month.

    Loosely associated with the attendance ledger of the same month; the
    link is filled in when one exists but is never required.
    """

    __tablename__ = "expense_ledger"

    expense_ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    employee_id: Mapped[str | None] = mapped_column(String, nullable=True)
    branch: Mapped[str | None] = mapped_column(String, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    attendance_ledger_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attendance_ledger.ledger_id", ondelete="SET NULL"),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("owner_id", "year", "month", name="expense_ledger_owner_month_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="expense_ledger_month_check"),
    )


class ExpenseItem(Base, TimestampMixin):
    """Commute or business expense line."""

    __tablename__ = "expense_item"

    item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    expense_ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("expense_ledger.expense_ledger_id", ondelete="CASCADE"),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    carrier_or_lodging: Mapped[str | None] = mapped_column(String, nullable=True)
    from_location: Mapped[str | None] = mapped_column(String, nullable=True)
    to_location: Mapped[str | None] = mapped_column(String, nullable=True)
    expense_type: Mapped[str | None] = mapped_column(String, nullable=True)
    trip_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="expense_item_amount_positive"),
        CheckConstraint(
            "category IN ('commute', 'business')",
            name="expense_item_category_check",
        ),
        CheckConstraint(
            "trip_type IN ('one-way', 'round-trip', 'other')",
            name="expense_item_trip_type_check",
        ),
    )

    def to_domain(self) -> ExpenseLine:
        return ExpenseLine(
            work_date=self.work_date,
            amount=self.amount,
            carrier_or_lodging=self.carrier_or_lodging,
            from_location=self.from_location,
            to_location=self.to_location,
            expense_type=self.expense_type,
            trip_type=TripType(self.trip_type),
            remarks=self.remarks,
        )

    @classmethod
    def from_domain(
        cls,
        expense_ledger_id: UUID,
        category: ExpenseCategory,
        position: int,
        line: ExpenseLine,
    ) -> ExpenseItem:
        return cls(
            expense_ledger_id=expense_ledger_id,
            category=category.value,
            position=position,
            work_date=line.work_date,
            carrier_or_lodging=line.carrier_or_lodging,
            from_location=line.from_location,
            to_location=line.to_location,
            expense_type=line.expense_type,
            trip_type=TripType(line.trip_type).value,
            amount=line.amount,
            remarks=line.remarks,
        )


class ExpenseReceipt(Base, TimestampMixin):
    """Receipt reference. File content is never stored here."""

    __tablename__ = "expense_receipt"

    receipt_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    expense_ledger_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("expense_ledger.expense_ledger_id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    blob_reference: Mapped[str] = mapped_column(String, nullable=False)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_type: Mapped[str | None] = mapped_column(String, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_domain(self) -> Receipt:
        return Receipt(
            file_name=self.file_name,
            blob_reference=self.blob_reference,
            uploaded_at=self.uploaded_at,
            file_size=self.file_size,
            file_type=self.file_type,
            remarks=self.remarks,
        )

    @classmethod
    def from_domain(cls, expense_ledger_id: UUID, receipt: Receipt) -> ExpenseReceipt:
        return cls(
            expense_ledger_id=expense_ledger_id,
            file_name=receipt.file_name,
            blob_reference=receipt.blob_reference,
            file_size=receipt.file_size,
            file_type=receipt.file_type,
            remarks=receipt.remarks,
            uploaded_at=receipt.uploaded_at,
        )
