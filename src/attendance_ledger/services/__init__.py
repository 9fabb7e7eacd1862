"""Attendance ledger services."""

from attendance_ledger.services.approval_service import ApprovalService, TransitionResult
from attendance_ledger.services.expense_service import ExpenseService, ExpenseSheet
from attendance_ledger.services.ledger_service import LedgerService
from attendance_ledger.services.state_machine import (
    ApprovalOutcome,
    ApprovalStage,
    LedgerEvent,
    LedgerStateMachine,
    LedgerStatus,
)

__all__ = [
    "ApprovalOutcome",
    "ApprovalService",
    "ApprovalStage",
    "ExpenseService",
    "ExpenseSheet",
    "LedgerEvent",
    "LedgerService",
    "LedgerStateMachine",
    "LedgerStatus",
    "TransitionResult",
]
