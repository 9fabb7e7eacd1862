"""ORM models."""

from attendance_ledger.models.base import Base
from attendance_ledger.models.expense import ExpenseItem, ExpenseLedger, ExpenseReceipt
from attendance_ledger.models.ledger import ApprovalAuditEntry, DailyRecordRow, MonthlyLedger

__all__ = [
    "ApprovalAuditEntry",
    "Base",
    "DailyRecordRow",
    "ExpenseItem",
    "ExpenseLedger",
    "ExpenseReceipt",
    "MonthlyLedger",
]
