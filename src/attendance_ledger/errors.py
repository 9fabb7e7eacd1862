"""Error taxonomy for the attendance ledger."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Sequence
from uuid import UUID

if TYPE_CHECKING:
    from attendance_ledger.calculators.validation import Violation


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "LEDGER_ERROR"


class FormatError(LedgerError, ValueError):
    """Raised when a time-of-day string cannot be parsed.

    Callers at the write boundary recover from this by clearing the field.
    """

    code = "FORMAT_ERROR"

    def __init__(self, raw: object, reason: str):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid time value {raw!r}: {reason}")


class RejectionReason(str, Enum):
    """Why a workflow transition was refused."""

    INVALID_STATE = "invalid_state"
    VALIDATION_FAILED = "validation_failed"
    INSUFFICIENT_ROLE = "insufficient_role"
    MISSING_COMMENT = "missing_comment"


class TransitionRejected(LedgerError):
    """Raised when a guard refuses a ledger status transition."""

    code = "TRANSITION_REJECTED"

    def __init__(
        self,
        reason: RejectionReason,
        from_status: str | None = None,
        event: str | None = None,
        detail: str | None = None,
    ):
        self.reason = reason
        self.from_status = from_status
        self.event = event
        self.detail = detail
        msg = f"Transition rejected ({reason.value})"
        if event:
            msg += f": '{event}' from '{from_status}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ValidationFailed(TransitionRejected):
    """Raised when daily records fail validation.

    Carries every violation found, in date order.
    """

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        violations: Sequence[Violation],
        from_status: str | None = None,
        event: str | None = None,
    ):
        self.violations = list(violations)
        dates = sorted({v.work_date.isoformat() for v in self.violations})
        super().__init__(
            RejectionReason.VALIDATION_FAILED,
            from_status=from_status,
            event=event,
            detail=f"{len(self.violations)} violation(s) on {', '.join(dates)}",
        )


class LedgerNotFoundError(LedgerError, LookupError):
    """Raised when a ledger id does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class LedgerNotEditableError(LedgerError):
    """Raised when records or expenses are written while the ledger is locked."""

    code = "LEDGER_NOT_EDITABLE"

    def __init__(self, ledger_id: UUID, status: str):
        self.ledger_id = ledger_id
        self.status = status
        super().__init__(f"Ledger {ledger_id} is read-only in status '{status}'")


class ConflictError(LedgerError):
    """Raised when a concurrent modification is detected at commit time."""

    code = "CONFLICT"

    def __init__(self, entity: str, entity_id: UUID | None, expected_version: int | None):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected version {expected_version}); re-fetch and retry"
        )


class StoreError(LedgerError):
    """Raised when the underlying store fails. Always chained to the cause."""

    code = "STORE_ERROR"
