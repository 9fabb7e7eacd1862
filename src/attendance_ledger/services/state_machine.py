"""Monthly ledger state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from attendance_ledger.errors import RejectionReason, TransitionRejected


def _value(member: object) -> str:
    return member.value if isinstance(member, Enum) else str(member)


class LedgerStatus(str, Enum):
    """Ledger status codes, as stored."""

    DRAFT = "00"
    SUBMITTED = "01"
    LEADER_APPROVED = "02"
    RETURNED = "03"
    ADMIN_APPROVED = "04"

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


class LedgerEvent(str, Enum):
    """Workflow events that move a ledger between statuses."""

    SUBMIT = "submit"
    LEADER_APPROVE = "leader_approve"
    LEADER_REJECT = "leader_reject"
    ADMIN_APPROVE = "admin_approve"
    REOPEN = "reopen"


class ApprovalStage(str, Enum):
    LEADER = "leader"
    ADMIN = "admin"


class ApprovalOutcome(str, Enum):
    APPROVED = "approved"
    RETURNED = "returned"


class LedgerStateMachine:
    """State machine for monthly ledger status transitions.

    Allowed transitions:
    - draft → submitted (submit)
    - returned → submitted (submit)
    - submitted → leader-approved (leader_approve)
    - submitted → returned (leader_reject)
    - leader-approved → admin-approved (admin_approve)
    - submitted / leader-approved / admin-approved → draft (reopen)

    Guards beyond the table (validation, roles, comments) are enforced by
    the approval service.
    """

    # {(from_status, event): to_status}
    TRANSITIONS: dict[tuple[LedgerStatus, LedgerEvent], LedgerStatus] = {
        (LedgerStatus.DRAFT, LedgerEvent.SUBMIT): LedgerStatus.SUBMITTED,
        (LedgerStatus.RETURNED, LedgerEvent.SUBMIT): LedgerStatus.SUBMITTED,
        (LedgerStatus.SUBMITTED, LedgerEvent.LEADER_APPROVE): LedgerStatus.LEADER_APPROVED,
        (LedgerStatus.SUBMITTED, LedgerEvent.LEADER_REJECT): LedgerStatus.RETURNED,
        (LedgerStatus.LEADER_APPROVED, LedgerEvent.ADMIN_APPROVE): LedgerStatus.ADMIN_APPROVED,
        (LedgerStatus.SUBMITTED, LedgerEvent.REOPEN): LedgerStatus.DRAFT,
        (LedgerStatus.LEADER_APPROVED, LedgerEvent.REOPEN): LedgerStatus.DRAFT,
        (LedgerStatus.ADMIN_APPROVED, LedgerEvent.REOPEN): LedgerStatus.DRAFT,
    }

    # Statuses where the owner may edit records and expenses
    EDITABLE = {
        LedgerStatus.DRAFT,
        LedgerStatus.RETURNED,
    }

    # Events that write an approval audit entry: event -> (stage, outcome)
    AUDITED_EVENTS: dict[LedgerEvent, tuple[ApprovalStage, ApprovalOutcome]] = {
        LedgerEvent.LEADER_APPROVE: (ApprovalStage.LEADER, ApprovalOutcome.APPROVED),
        LedgerEvent.LEADER_REJECT: (ApprovalStage.LEADER, ApprovalOutcome.RETURNED),
        LedgerEvent.ADMIN_APPROVE: (ApprovalStage.ADMIN, ApprovalOutcome.APPROVED),
    }

    @classmethod
    def can_apply(cls, from_status: str, event: str) -> bool:
        """Check if an event is accepted in the given status."""
        try:
            key = (LedgerStatus(from_status), LedgerEvent(event))
        except ValueError:
            return False
        return key in cls.TRANSITIONS

    @classmethod
    def next_status(cls, from_status: str, event: str) -> LedgerStatus:
        """Return the target status, raising TransitionRejected if not allowed."""
        if not cls.can_apply(from_status, event):
            raise TransitionRejected(
                RejectionReason.INVALID_STATE,
                from_status=_value(from_status),
                event=_value(event),
                detail="event not allowed in this status",
            )
        return cls.TRANSITIONS[(LedgerStatus(from_status), LedgerEvent(event))]

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Check if records and expense items can be modified."""
        try:
            return LedgerStatus(status) in cls.EDITABLE
        except ValueError:
            return False

    @classmethod
    def allowed_events(cls, status: str) -> list[LedgerEvent]:
        """Get the events accepted from the given status."""
        return [event for (src, event) in cls.TRANSITIONS if src == status]

    @classmethod
    def audit_for(cls, event: str) -> tuple[ApprovalStage, ApprovalOutcome] | None:
        """Return the (stage, outcome) audit pair for approve/reject events."""
        try:
            return cls.AUDITED_EVENTS.get(LedgerEvent(event))
        except ValueError:
            return None
