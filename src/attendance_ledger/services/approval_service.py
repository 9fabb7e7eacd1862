"""Approval service - drives ledgers through the two-stage review workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_ledger.calculators.validation import validate_records
from attendance_ledger.database import store_errors
from attendance_ledger.errors import (
    ConflictError,
    RejectionReason,
    TransitionRejected,
    ValidationFailed,
)
from attendance_ledger.models import ApprovalAuditEntry, MonthlyLedger
from attendance_ledger.models.base import utcnow
from attendance_ledger.services.identity import RoleProvider
from attendance_ledger.services.ledger_service import LedgerService
from attendance_ledger.services.state_machine import (
    ApprovalOutcome,
    ApprovalStage,
    LedgerEvent,
    LedgerStateMachine,
    LedgerStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an accepted transition."""

    ledger: MonthlyLedger
    from_status: LedgerStatus
    to_status: LedgerStatus
    audit_entry: ApprovalAuditEntry | None = None


class ApprovalService:
    """Service for ledger status transitions.

    Operations:
    - submit: draft/returned → submitted, only when every record validates
    - leader_approve / leader_reject: first review stage
    - admin_approve: second review stage
    - reopen: back to draft, by the owner or an admin

    The caller's expected_version is checked first, ahead of the state, role
    and validation guards, and again by the compare-and-set that applies the
    transition. The approval audit entry is added in the same session, so
    status and audit row commit together or not at all. Two actors racing on
    the same version get exactly one success and one ConflictError.
    """

    def __init__(self, session: AsyncSession, roles: RoleProvider):
        self.session = session
        self.roles = roles
        self.ledgers = LedgerService(session)

    async def submit(
        self,
        ledger_id: UUID,
        actor_id: UUID,
        expected_version: int,
    ) -> TransitionResult:
        """Submit a ledger for review."""
        ledger = await self._load(ledger_id, expected_version)
        LedgerStateMachine.next_status(ledger.status, LedgerEvent.SUBMIT)

        if actor_id != ledger.owner_id:
            raise TransitionRejected(
                RejectionReason.INSUFFICIENT_ROLE,
                from_status=ledger.status,
                event=LedgerEvent.SUBMIT.value,
                detail="only the owner can submit a ledger",
            )

        violations = validate_records(await self.ledgers.load_records(ledger_id))
        if violations:
            raise ValidationFailed(violations, from_status=ledger.status, event=LedgerEvent.SUBMIT.value)

        return await self._apply(
            ledger, LedgerEvent.SUBMIT, actor_id, expected_version, submitted_at=utcnow()
        )

    async def leader_approve(
        self,
        ledger_id: UUID,
        actor_id: UUID,
        expected_version: int,
        comment: str | None = None,
    ) -> TransitionResult:
        """Approve a submitted ledger at the leader stage."""
        ledger = await self._load(ledger_id, expected_version)
        LedgerStateMachine.next_status(ledger.status, LedgerEvent.LEADER_APPROVE)
        await self._require_leader(ledger, actor_id, LedgerEvent.LEADER_APPROVE)
        return await self._apply(
            ledger, LedgerEvent.LEADER_APPROVE, actor_id, expected_version, comment=comment
        )

    async def leader_reject(
        self,
        ledger_id: UUID,
        actor_id: UUID,
        expected_version: int,
        comment: str | None,
    ) -> TransitionResult:
        """Return a submitted ledger to its owner. A comment is required."""
        ledger = await self._load(ledger_id, expected_version)
        LedgerStateMachine.next_status(ledger.status, LedgerEvent.LEADER_REJECT)
        await self._require_leader(ledger, actor_id, LedgerEvent.LEADER_REJECT)

        if not comment or not comment.strip():
            raise TransitionRejected(
                RejectionReason.MISSING_COMMENT,
                from_status=ledger.status,
                event=LedgerEvent.LEADER_REJECT.value,
                detail="a reason is required to return a ledger",
            )

        return await self._apply(
            ledger, LedgerEvent.LEADER_REJECT, actor_id, expected_version, comment=comment.strip()
        )

    async def admin_approve(
        self,
        ledger_id: UUID,
        actor_id: UUID,
        expected_version: int,
        comment: str | None = None,
    ) -> TransitionResult:
        """Give final approval to a leader-approved ledger."""
        ledger = await self._load(ledger_id, expected_version)
        LedgerStateMachine.next_status(ledger.status, LedgerEvent.ADMIN_APPROVE)

        if not await self.roles.is_admin(actor_id):
            raise TransitionRejected(
                RejectionReason.INSUFFICIENT_ROLE,
                from_status=ledger.status,
                event=LedgerEvent.ADMIN_APPROVE.value,
                detail="admin role required",
            )

        return await self._apply(
            ledger, LedgerEvent.ADMIN_APPROVE, actor_id, expected_version, comment=comment
        )

    async def reopen(
        self,
        ledger_id: UUID,
        actor_id: UUID,
        expected_version: int,
    ) -> TransitionResult:
        """Send a submitted or approved ledger back to draft."""
        ledger = await self._load(ledger_id, expected_version)
        LedgerStateMachine.next_status(ledger.status, LedgerEvent.REOPEN)

        if actor_id != ledger.owner_id and not await self.roles.is_admin(actor_id):
            raise TransitionRejected(
                RejectionReason.INSUFFICIENT_ROLE,
                from_status=ledger.status,
                event=LedgerEvent.REOPEN.value,
                detail="only the owner or an admin can reopen a ledger",
            )

        return await self._apply(
            ledger, LedgerEvent.REOPEN, actor_id, expected_version, submitted_at=None
        )

    async def audit_history(self, ledger_id: UUID) -> list[ApprovalAuditEntry]:
        return await self.ledgers.audit_history(ledger_id)

    async def stage_satisfied(self, ledger_id: UUID, stage: ApprovalStage) -> bool:
        entry = (await self.ledgers.current_stage_outcomes(ledger_id)).get(stage)
        return entry is not None and entry.outcome == ApprovalOutcome.APPROVED.value

    async def _load(self, ledger_id: UUID, expected_version: int) -> MonthlyLedger:
        """Load a ledger, refusing a stale version before any other guard runs."""
        ledger = await self.ledgers.require_ledger(ledger_id)
        if ledger.version != expected_version:
            logger.warning(
                "Stale version on ledger %s (expected %d, found %d)",
                ledger_id, expected_version, ledger.version,
            )
            raise ConflictError("ledger", ledger_id, expected_version)
        return ledger

    async def _require_leader(
        self, ledger: MonthlyLedger, actor_id: UUID, event: LedgerEvent
    ) -> None:
        if not await self.roles.is_leader_for_branch(actor_id, ledger.branch):
            raise TransitionRejected(
                RejectionReason.INSUFFICIENT_ROLE,
                from_status=ledger.status,
                event=event.value,
                detail=f"leader role for branch {ledger.branch!r} required",
            )

    async def _apply(
        self,
        ledger: MonthlyLedger,
        event: LedgerEvent,
        actor_id: UUID,
        expected_version: int,
        comment: str | None = None,
        **extra_values: object,
    ) -> TransitionResult:
        """Commit the status change and, for reviews, its audit entry."""
        from_status = LedgerStatus(ledger.status)
        to_status = LedgerStateMachine.next_status(from_status, event)

        new_version = await self.ledgers.compare_and_set(
            ledger,
            expected_version,
            from_statuses=[from_status],
            status=to_status.value,
            updated_by=actor_id,
            **extra_values,
        )

        entry = None
        audit = LedgerStateMachine.audit_for(event)
        if audit is not None:
            stage, outcome = audit
            entry = ApprovalAuditEntry(
                ledger_id=ledger.ledger_id,
                stage=stage.value,
                outcome=outcome.value,
                actor_id=actor_id,
                comment=comment,
                ledger_version=new_version,
            )
            async with store_errors("record_audit"):
                self.session.add(entry)
                await self.session.flush()

        logger.info(
            "Ledger %s %s: %s -> %s by %s (version %d)",
            ledger.ledger_id, event.value, from_status.label, to_status.label,
            actor_id, new_version,
        )
        return TransitionResult(ledger, from_status, to_status, entry)
