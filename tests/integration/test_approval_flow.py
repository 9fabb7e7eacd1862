"""Two-stage approval workflow tests: guards, audit history, reopen."""

import pytest

from attendance_ledger.errors import (
    ConflictError,
    RejectionReason,
    TransitionRejected,
    ValidationFailed,
)
from attendance_ledger.services.approval_service import ApprovalService
from attendance_ledger.services.ledger_service import LedgerService
from attendance_ledger.services.state_machine import ApprovalStage, LedgerStateMachine

from tests.conftest import (
    ADMIN_ID,
    BRANCH,
    LEADER_ID,
    OTHER_LEADER_ID,
    OWNER_ID,
    leave_day,
    worked_day,
)


pytestmark = pytest.mark.asyncio


@pytest.fixture
def approvals(session, roles) -> ApprovalService:
    return ApprovalService(session, roles)


async def _draft(session, records=None):
    ledger = await LedgerService(session).save_ledger(
        OWNER_ID,
        2024,
        4,
        records if records is not None else [worked_day(1), leave_day(2)],
        actor_id=OWNER_ID,
        branch=BRANCH,
    )
    await session.commit()
    return ledger


async def _submitted(session, approvals):
    ledger = await _draft(session)
    await approvals.submit(ledger.ledger_id, OWNER_ID, ledger.version)
    await session.commit()
    return ledger


class TestSubmit:
    """Test submission guards."""

    async def test_submit_valid_draft(self, session, approvals):
        ledger = await _draft(session)
        result = await approvals.submit(ledger.ledger_id, OWNER_ID, expected_version=1)
        await session.commit()

        assert result.from_status.value == "00"
        assert result.to_status.value == "01"
        assert result.audit_entry is None
        assert ledger.status == "01"
        assert ledger.version == 2
        assert ledger.submitted_at is not None
        assert not LedgerStateMachine.is_editable(ledger.status)

    async def test_submit_with_violations_changes_nothing(self, session, approvals):
        broken = worked_day(3, start="18:00", end="09:00")
        incomplete = worked_day(1)
        incomplete.remarks = None
        ledger = await _draft(session, [broken, incomplete])
        # The rollback below expires the instance
        ledger_id = ledger.ledger_id

        with pytest.raises(ValidationFailed) as exc_info:
            await approvals.submit(ledger_id, OWNER_ID, expected_version=1)

        assert exc_info.value.reason == RejectionReason.VALIDATION_FAILED
        assert [v.work_date.day for v in exc_info.value.violations] == [1, 3]
        await session.rollback()

        reloaded = await LedgerService(session).get_ledger_by_id(ledger_id)
        assert reloaded.status == "00"
        assert reloaded.version == 1

    async def test_only_owner_submits(self, session, approvals):
        ledger = await _draft(session)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.submit(ledger.ledger_id, LEADER_ID, expected_version=1)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_ROLE

    async def test_submit_twice_is_invalid_state(self, session, approvals):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.submit(ledger.ledger_id, OWNER_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INVALID_STATE

    async def test_stale_version_conflicts(self, session, approvals):
        ledger = await _draft(session)
        await LedgerService(session).save_ledger(
            OWNER_ID, 2024, 4, [worked_day(5)], actor_id=OWNER_ID
        )
        await session.commit()

        with pytest.raises(ConflictError):
            await approvals.submit(ledger.ledger_id, OWNER_ID, expected_version=1)


class TestLeaderStage:
    """Test leader approve/reject."""

    async def test_leader_approve_records_audit(self, session, approvals):
        ledger = await _submitted(session, approvals)
        result = await approvals.leader_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        await session.commit()

        assert ledger.status == "02"
        entry = result.audit_entry
        assert entry.stage == "leader"
        assert entry.outcome == "approved"
        assert entry.actor_id == LEADER_ID
        assert entry.ledger_version == ledger.version
        assert await approvals.stage_satisfied(ledger.ledger_id, ApprovalStage.LEADER)

    async def test_leader_of_other_branch_refused(self, session, approvals):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.leader_approve(ledger.ledger_id, OTHER_LEADER_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_ROLE

    async def test_admin_is_not_a_leader(self, session, approvals):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected):
            await approvals.leader_approve(ledger.ledger_id, ADMIN_ID, ledger.version)

    async def test_reject_returns_ledger_for_editing(self, session, approvals):
        """A leader return sends the ledger back to its owner with a comment."""
        ledger = await _submitted(session, approvals)
        result = await approvals.leader_reject(
            ledger.ledger_id, LEADER_ID, ledger.version, comment="missing remarks"
        )
        await session.commit()

        assert ledger.status == "03"
        assert LedgerStateMachine.is_editable(ledger.status)
        assert result.audit_entry.stage == "leader"
        assert result.audit_entry.outcome == "returned"
        assert result.audit_entry.comment == "missing remarks"

        # Owner can edit and resubmit
        await LedgerService(session).save_ledger(
            OWNER_ID, 2024, 4, [worked_day(1), worked_day(2)], actor_id=OWNER_ID
        )
        await session.commit()
        resubmitted = await approvals.submit(ledger.ledger_id, OWNER_ID, ledger.version)
        await session.commit()
        assert resubmitted.to_status.value == "01"
        assert not await approvals.stage_satisfied(ledger.ledger_id, ApprovalStage.LEADER)

    @pytest.mark.parametrize("comment", [None, "", "   "])
    async def test_reject_requires_comment(self, session, approvals, comment):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.leader_reject(ledger.ledger_id, LEADER_ID, ledger.version, comment)
        assert exc_info.value.reason == RejectionReason.MISSING_COMMENT


class TestAdminStage:
    """Test final approval."""

    async def test_full_approval_chain(self, session, approvals):
        ledger = await _submitted(session, approvals)
        await approvals.leader_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        await session.commit()
        await approvals.admin_approve(ledger.ledger_id, ADMIN_ID, ledger.version, "ok")
        await session.commit()

        assert ledger.status == "04"
        assert ledger.version == 4
        history = await approvals.audit_history(ledger.ledger_id)
        assert [(e.stage, e.outcome) for e in history] == [
            ("leader", "approved"),
            ("admin", "approved"),
        ]
        assert [e.ledger_version for e in history] == [3, 4]

    async def test_admin_cannot_skip_leader(self, session, approvals):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.admin_approve(ledger.ledger_id, ADMIN_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INVALID_STATE

    async def test_leader_cannot_give_final_approval(self, session, approvals):
        ledger = await _submitted(session, approvals)
        await approvals.leader_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        await session.commit()
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.admin_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_ROLE

    async def test_approved_ledger_is_locked(self, session, approvals):
        ledger = await _submitted(session, approvals)
        await approvals.leader_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        await approvals.admin_approve(ledger.ledger_id, ADMIN_ID, ledger.version)
        await session.commit()

        for event in ("submit", "leader_approve", "leader_reject", "admin_approve"):
            assert not LedgerStateMachine.can_apply(ledger.status, event)


class TestReopen:
    """Test sending a ledger back to draft."""

    async def test_owner_reopens_submitted(self, session, approvals):
        ledger = await _submitted(session, approvals)
        result = await approvals.reopen(ledger.ledger_id, OWNER_ID, ledger.version)
        await session.commit()

        assert result.to_status.value == "00"
        assert ledger.submitted_at is None
        assert result.audit_entry is None

    async def test_admin_reopens_approved_and_history_is_kept(self, session, approvals):
        ledger = await _submitted(session, approvals)
        await approvals.leader_approve(ledger.ledger_id, LEADER_ID, ledger.version)
        await approvals.admin_approve(ledger.ledger_id, ADMIN_ID, ledger.version)
        await approvals.reopen(ledger.ledger_id, ADMIN_ID, ledger.version)
        await session.commit()

        assert ledger.status == "00"
        assert len(await approvals.audit_history(ledger.ledger_id)) == 2

    async def test_leader_cannot_reopen(self, session, approvals):
        ledger = await _submitted(session, approvals)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.reopen(ledger.ledger_id, LEADER_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_ROLE

    async def test_draft_cannot_be_reopened(self, session, approvals):
        ledger = await _draft(session)
        with pytest.raises(TransitionRejected) as exc_info:
            await approvals.reopen(ledger.ledger_id, OWNER_ID, ledger.version)
        assert exc_info.value.reason == RejectionReason.INVALID_STATE
